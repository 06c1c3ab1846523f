"""Great-circle distance, in Python and as a SQL expression."""

import math

from sqlalchemy import Float, func
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

EARTH_RADIUS_KM = 6371.0


def great_circle_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two points in kilometres."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


class great_circle_km(FunctionElement):
    """great_circle_km(lat1, lng1, lat2, lng2) -> kilometres."""

    type = Float()
    name = "great_circle_km"
    inherit_cache = True


@compiles(great_circle_km)
def _compile_great_circle_km(element, compiler, **kw):
    lat1, lng1, lat2, lng2 = list(element.clauses)
    phi1 = func.radians(lat1)
    phi2 = func.radians(lat2)
    half_d_phi = (func.radians(lat2) - func.radians(lat1)) / 2
    half_d_lambda = (func.radians(lng2) - func.radians(lng1)) / 2
    a = func.power(func.sin(half_d_phi), 2) + func.cos(phi1) * func.cos(phi2) * func.power(
        func.sin(half_d_lambda), 2
    )
    expr = 2 * EARTH_RADIUS_KM * func.asin(func.sqrt(func.least(1.0, a)))
    return compiler.process(expr, **kw)


@compiles(great_circle_km, "sqlite")
def _compile_great_circle_km_sqlite(element, compiler, **kw):
    # Backed by great_circle_distance_km, registered on each SQLite connection.
    return "great_circle_km(%s)" % compiler.process(element.clauses, **kw)


def point_in_bounds(lat: float, lng: float, north: float, south: float, east: float, west: float) -> bool:
    if not south <= lat <= north:
        return False
    if west <= east:
        return west <= lng <= east
    # Viewport crosses the antimeridian.
    return lng >= west or lng <= east
