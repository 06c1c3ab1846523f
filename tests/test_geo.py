import pytest

from thorbis.core.geo import great_circle_distance_km, point_in_bounds


def test_zero_distance():
    assert great_circle_distance_km(37.7749, -122.4194, 37.7749, -122.4194) == 0


def test_san_francisco_to_los_angeles():
    assert great_circle_distance_km(37.7749, -122.4194, 34.0522, -118.2437) == pytest.approx(559.1, abs=1.0)


def test_distance_is_symmetric():
    a = great_circle_distance_km(40.7128, -74.0060, 51.5074, -0.1278)
    b = great_circle_distance_km(51.5074, -0.1278, 40.7128, -74.0060)
    assert a == pytest.approx(b)


def test_point_in_bounds_edges_are_inclusive():
    assert point_in_bounds(38.0, -123.0, north=38.0, south=37.0, east=-122.0, west=-123.0)
    assert not point_in_bounds(38.01, -122.5, north=38.0, south=37.0, east=-122.0, west=-123.0)


def test_point_in_bounds_across_antimeridian():
    assert point_in_bounds(0, 179.5, north=10, south=-10, east=-170, west=170)
    assert point_in_bounds(0, -175, north=10, south=-10, east=-170, west=170)
    assert not point_in_bounds(0, 0, north=10, south=-10, east=-170, west=170)
