import pytest
from starlette.datastructures import QueryParams

from thorbis.core.exceptions import ValidationError
from thorbis.services.search_params import (
    parse_detail_params,
    parse_map_params,
    parse_search_params,
    parse_simple_search_body,
    parse_simple_search_params,
)


def test_defaults():
    params = parse_search_params(QueryParams(""))
    assert params.page == 1
    assert params.limit == 20
    assert params.sort == "relevance"
    assert params.open == "any"
    assert params.include == ["photos", "categories"]
    assert not params.has_filters()


def test_list_values_split_on_commas_and_repeats():
    params = parse_search_params(QueryParams("categories=pizza,cafe&categories=bakery&features=wifi, parking"))
    assert params.categories == ["pizza", "cafe", "bakery"]
    assert params.features == ["wifi", "parking"]


def test_empty_strings_are_treated_as_absent():
    params = parse_search_params(QueryParams("query=&rating=&priceRange=&categories="))
    assert params.query is None
    assert params.rating is None
    assert params.price_range is None
    assert params.categories == []
    assert not params.has_filters()


def test_flat_bounds_are_folded():
    params = parse_search_params(QueryParams("north=38&south=37&east=-122&west=-123"))
    assert params.bounds.north == 38
    assert params.bounds.west == -123
    assert params.has_filters()


def test_partial_bounds_rejected():
    with pytest.raises(ValidationError) as exc_info:
        parse_search_params(QueryParams("north=38&south=37&east=-122"))
    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.details[0]["field"] == "bounds"
    assert "west" in exc_info.value.details[0]["message"]


def test_partial_nested_bounds_rejected():
    with pytest.raises(ValidationError):
        parse_search_params({"bounds": {"north": 38, "south": 37, "east": -122}})


def test_flat_and_nested_bounds_together_rejected():
    with pytest.raises(ValidationError):
        parse_search_params({"bounds": {"north": 38, "south": 37, "east": -122, "west": -123}, "north": 39})


def test_south_above_north_rejected():
    with pytest.raises(ValidationError):
        parse_search_params(QueryParams("north=37&south=38&east=-122&west=-123"))


def test_center_requires_lat_and_lng():
    with pytest.raises(ValidationError):
        parse_search_params(QueryParams("lat=37.7&radius=5"))

    params = parse_search_params(QueryParams("lat=37.7&lng=-122.4"))
    assert params.center.radius == 10


@pytest.mark.parametrize(
    "query",
    [
        "rating=6",
        "rating=0",
        "limit=0",
        "limit=101",
        "page=0",
        "sort=cheapest",
        "open=later",
        "priceRange=$$$$$",
        "lat=91&lng=0",
        "lat=0&lng=0&radius=0",
    ],
)
def test_out_of_range_values_rejected(query):
    with pytest.raises(ValidationError) as exc_info:
        parse_search_params(QueryParams(query))
    assert exc_info.value.details


def test_similar_include_rejected_on_list():
    with pytest.raises(ValidationError) as exc_info:
        parse_search_params(QueryParams("include=photos,similar"))
    assert exc_info.value.details[0]["field"].startswith("include")


def test_offset_derived_from_page():
    params = parse_search_params(QueryParams("page=3&limit=10"))
    assert params.offset == 20


def test_detail_params_aliases():
    params = parse_detail_params(QueryParams("include=reviews,similar&reviewsLimit=5&reviewsSort=rating_high"))
    assert params.include == ["reviews", "similar"]
    assert params.reviews_limit == 5
    assert params.reviews_sort == "rating_high"


def test_detail_reviews_limit_capped():
    with pytest.raises(ValidationError):
        parse_detail_params(QueryParams("reviewsLimit=51"))


def test_simple_search_params():
    params = parse_simple_search_params(QueryParams("query=pizza&limit=5&offset=10&sort_field=rating&sort_order=asc"))
    assert params.query == "pizza"
    assert (params.limit, params.offset) == (5, 10)
    assert (params.sort_field, params.sort_order) == ("rating", "asc")
    assert params.has_filters()


def test_simple_search_body_nesting():
    params = parse_simple_search_body(
        {
            "query": "deli",
            "filters": {"featured": True, "priceRange": "$$"},
            "pagination": {"limit": 3, "offset": 6},
            "sort": {"field": "name", "order": "asc"},
        }
    )
    assert params.featured is True
    assert params.price_range.value == "$$"
    assert (params.limit, params.offset) == (3, 6)
    assert params.sort_field == "name"


def test_simple_search_body_that_is_not_an_object_uses_defaults():
    params = parse_simple_search_body(["not", "an", "object"])
    assert params.query == ""
    assert params.limit == 20
    assert not params.has_filters()


@pytest.mark.parametrize(
    "zoom,limit,expected",
    [(10, 100, 50), (13, 150, 100), (16, 200, 200), (16, 20, 20)],
)
def test_map_effective_limit_follows_zoom(zoom, limit, expected):
    params = parse_map_params({"north": 38, "south": 37, "east": -122, "west": -123, "zoom": zoom, "limit": limit})
    assert params.effective_limit == expected


def test_map_params_require_all_bounds():
    with pytest.raises(ValidationError):
        parse_map_params(QueryParams("north=38&south=37&east=-122"))
