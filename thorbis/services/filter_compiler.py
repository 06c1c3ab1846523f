"""
Translate validated search parameters into SQLAlchemy statements.

The compiler is pure: it only builds expressions. Predicates are ANDed in a
fixed order, the sort always ends with ``Business.id`` so identical inputs
against identical data yield identical pages, and ``count_statement`` shares
the exact predicate list with ``statement`` so totals match the rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import ColumnElement, and_, func, or_, select

from thorbis.core.config import settings
from thorbis.core.geo import great_circle_km
from thorbis.models import Business, BusinessFeature, BusinessHours, Category
from thorbis.models.enums import BusinessStatus
from thorbis.schemas.auth import Viewer
from thorbis.schemas.business import BusinessSearchParams, Center


@dataclass
class CompiledQuery:
    predicates: list[ColumnElement[bool]]
    order_by: list[Any]
    offset: int
    limit: int
    includes: list[str]
    distance: ColumnElement[float] | None = None

    def statement(self, *options):
        columns = [Business]
        if self.distance is not None:
            columns.append(self.distance.label("distance_km"))
        return (
            select(*columns)
            .where(*self.predicates)
            .order_by(*self.order_by)
            .offset(self.offset)
            .limit(self.limit)
            .options(*options)
        )

    def count_statement(self):
        return select(func.count()).select_from(Business).where(*self.predicates)

    def id_select(self):
        """Ids of every matching business, ignoring sort and range (used by facets)."""
        return select(Business.id).where(*self.predicates)


# ============== Predicates ==============

def visibility_predicate(viewer: Viewer | None) -> ColumnElement[bool]:
    """Anonymous callers see published rows; owners also see their own; admins see all but deleted."""
    not_deleted = Business.status != BusinessStatus.DELETED.value
    if viewer is None:
        return Business.status == BusinessStatus.PUBLISHED.value
    if viewer.is_admin:
        return not_deleted
    return and_(
        not_deleted,
        or_(Business.status == BusinessStatus.PUBLISHED.value, Business.owner_id == viewer.id),
    )


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _contains(column, text: str) -> ColumnElement[bool]:
    """Case-insensitive literal substring match."""
    return column.ilike(f"%{_escape_like(text)}%", escape="\\")


def text_predicate(query: str) -> ColumnElement[bool]:
    return or_(_contains(Business.name, query), _contains(Business.description, query))


def location_predicate(location: str) -> ColumnElement[bool]:
    return or_(
        _contains(Business.city, location),
        _contains(Business.state, location),
        _contains(Business.address, location),
    )


def category_predicate(slugs: list[str]) -> ColumnElement[bool]:
    return Business.categories.any(Category.slug.in_(slugs))


def features_predicate(tags: list[str]) -> ColumnElement[bool]:
    return and_(*(Business.feature_tags.any(BusinessFeature.tag == tag) for tag in tags))


def bounds_predicate(north: float, south: float, east: float, west: float) -> ColumnElement[bool]:
    lat = and_(Business.latitude >= south, Business.latitude <= north)
    if west <= east:
        lng = and_(Business.longitude >= west, Business.longitude <= east)
    else:
        lng = or_(Business.longitude >= west, Business.longitude <= east)
    return and_(lat, lng)


def distance_expression(center: Center) -> ColumnElement[float]:
    return great_circle_km(Business.latitude, Business.longitude, center.lat, center.lng)


def radius_predicate(center: Center) -> ColumnElement[bool]:
    return and_(
        Business.latitude.is_not(None),
        Business.longitude.is_not(None),
        distance_expression(center) <= center.radius,
    )


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.DIRECTORY_TIMEZONE))


def day_number(moment: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (moment.weekday() + 1) % 7


def open_predicate(mode: str, now: datetime) -> ColumnElement[bool] | None:
    if mode == "any":
        return None
    conditions = [BusinessHours.day_of_week == day_number(now), BusinessHours.is_closed.is_(False)]
    if mode == "now":
        current = now.time().replace(tzinfo=None, microsecond=0)
        conditions += [BusinessHours.open_time <= current, BusinessHours.close_time >= current]
    return Business.hours.any(and_(*conditions))


# ============== Sorting ==============

RELEVANCE = (Business.featured.desc(), Business.rating.desc(), Business.review_count.desc())

SORT_ORDERS: dict[str, tuple] = {
    "relevance": RELEVANCE,
    "rating": (Business.rating.desc(), Business.review_count.desc()),
    "newest": (Business.created_at.desc(),),
    "popular": (Business.review_count.desc(), Business.rating.desc()),
}


def sort_clauses(sort: str, distance: ColumnElement[float] | None) -> list[Any]:
    if sort == "distance" and distance is not None:
        clauses = [distance.asc(), *RELEVANCE]
    else:
        clauses = list(SORT_ORDERS.get(sort, RELEVANCE))
    clauses.append(Business.id.asc())
    return clauses


# ============== Compiler ==============

def compile_search(
    params: BusinessSearchParams,
    viewer: Viewer | None = None,
    now: datetime | None = None,
) -> CompiledQuery:
    predicates: list[ColumnElement[bool]] = [visibility_predicate(viewer)]

    if params.query:
        predicates.append(text_predicate(params.query))
    if params.location:
        predicates.append(location_predicate(params.location))

    slugs = list(params.categories or [])
    if params.category:
        slugs.append(params.category)
    if slugs:
        predicates.append(category_predicate(slugs))

    if params.rating is not None:
        predicates.append(Business.rating >= params.rating)
    if params.price_range is not None:
        predicates.append(Business.price_range == params.price_range.value)
    if params.features:
        predicates.append(features_predicate(params.features))

    opened = open_predicate(params.open, now or local_now())
    if opened is not None:
        predicates.append(opened)

    if params.verified is not None:
        predicates.append(Business.verified.is_(params.verified))
    if params.featured is not None:
        predicates.append(Business.featured.is_(params.featured))

    if params.bounds is not None:
        b = params.bounds
        predicates.append(bounds_predicate(b.north, b.south, b.east, b.west))

    distance = None
    if params.center is not None:
        distance = distance_expression(params.center)
        predicates.append(radius_predicate(params.center))

    includes = list(dict.fromkeys(params.include))
    return CompiledQuery(
        predicates=predicates,
        order_by=sort_clauses(params.sort, distance),
        offset=params.offset,
        limit=params.limit,
        includes=includes,
        distance=distance,
    )
