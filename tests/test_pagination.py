import math

import pytest

from thorbis.services.result_assembler import build_pagination


def test_five_results_two_per_page():
    first = build_pagination(page=1, limit=2, total=5)
    assert (first.pages, first.returned, first.has_next, first.has_prev) == (3, 2, True, False)

    last = build_pagination(page=3, limit=2, total=5)
    assert (last.returned, last.has_next, last.has_prev) == (1, False, True)


def test_page_past_the_end_returns_nothing():
    meta = build_pagination(page=4, limit=2, total=5)
    assert meta.returned == 0
    assert meta.has_prev
    assert not meta.has_next


def test_empty_result():
    meta = build_pagination(page=1, limit=20, total=0)
    assert (meta.pages, meta.returned, meta.has_next, meta.has_prev) == (0, 0, False, False)


@pytest.mark.parametrize("total", [0, 1, 19, 20, 21, 99, 100, 101])
@pytest.mark.parametrize("limit", [1, 7, 20, 100])
def test_pagination_invariants(total, limit):
    pages = math.ceil(total / limit)
    returned_sum = 0
    for page in range(1, pages + 2):
        meta = build_pagination(page=page, limit=limit, total=total)
        assert meta.pages == pages
        assert meta.has_next == (page < pages)
        assert meta.has_prev == (page > 1)
        assert 0 <= meta.returned <= limit
        returned_sum += meta.returned
    assert returned_sum == total


def test_serialized_with_camel_case_keys():
    dumped = build_pagination(page=1, limit=2, total=5).model_dump(by_alias=True)
    assert dumped["hasNext"] is True
    assert dumped["hasPrev"] is False
