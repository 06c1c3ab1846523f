import uuid
from datetime import datetime

from sqlalchemy.dialects import postgresql, sqlite

from thorbis.models.enums import UserRole
from thorbis.schemas.auth import Viewer
from thorbis.services.filter_compiler import (
    compile_search,
    day_number,
    open_predicate,
    sort_clauses,
    text_predicate,
    visibility_predicate,
)
from thorbis.services.search_params import parse_search_params

MONDAY_NOON = datetime(2026, 10, 19, 12, 0)


def _sql(clause, dialect=None, literal=True):
    kwargs = {"literal_binds": True} if literal else {}
    return str(clause.compile(dialect=dialect or sqlite.dialect(), compile_kwargs=kwargs))


def test_day_number_starts_on_sunday():
    assert day_number(datetime(2026, 10, 18)) == 0
    assert day_number(MONDAY_NOON) == 1
    assert day_number(datetime(2026, 10, 24)) == 6


def test_open_any_adds_no_predicate():
    assert open_predicate("any", MONDAY_NOON) is None


def test_every_sort_ends_with_id():
    for sort in ("relevance", "rating", "newest", "popular", "distance"):
        clauses = sort_clauses(sort, None)
        assert _sql(clauses[-1]) == "businesses.id ASC"


def test_distance_sort_without_center_falls_back_to_relevance():
    assert [_sql(c) for c in sort_clauses("distance", None)] == [_sql(c) for c in sort_clauses("relevance", None)]


def test_compile_only_adds_requested_predicates():
    compiled = compile_search(parse_search_params({}), now=MONDAY_NOON)
    assert len(compiled.predicates) == 1
    assert compiled.distance is None

    compiled = compile_search(
        parse_search_params({"query": "pizza", "rating": "4", "verified": "true", "open": "now"}),
        now=MONDAY_NOON,
    )
    assert len(compiled.predicates) == 5


def test_center_adds_distance_column_and_sort():
    params = parse_search_params({"lat": "37.77", "lng": "-122.42", "radius": "5", "sort": "distance"})
    compiled = compile_search(params, now=MONDAY_NOON)
    assert compiled.distance is not None
    assert "distance_km" in _sql(compiled.statement())
    assert "great_circle_km" in _sql(compiled.order_by[0])


def test_distance_compiles_to_haversine_on_postgres():
    params = parse_search_params({"lat": "37.77", "lng": "-122.42"})
    compiled = compile_search(params, now=MONDAY_NOON)
    sql = _sql(compiled.distance, postgresql.dialect())
    assert "asin" in sql
    assert "great_circle_km" not in sql


def test_count_statement_has_no_order_or_limit():
    compiled = compile_search(parse_search_params({"query": "pizza"}), now=MONDAY_NOON)
    sql = _sql(compiled.count_statement())
    assert "count(*)" in sql
    assert "ORDER BY" not in sql
    assert "LIMIT" not in sql


def test_visibility_rules():
    assert _sql(visibility_predicate(None)) == "businesses.status = 'published'"

    admin = Viewer(id=uuid.uuid4(), role=UserRole.ADMIN)
    assert _sql(visibility_predicate(admin)) == "businesses.status != 'deleted'"

    owner = Viewer(id=uuid.uuid4())
    sql = _sql(visibility_predicate(owner), literal=False)
    assert "businesses.owner_id" in sql
    assert sql.count("businesses.status") == 2


def test_antimeridian_bounds_use_or():
    params = parse_search_params({"north": "10", "south": "-10", "east": "-170", "west": "170"})
    compiled = compile_search(params, now=MONDAY_NOON)
    assert " OR " in _sql(compiled.predicates[-1])


def test_text_match_escapes_like_wildcards():
    compiled = text_predicate("50%_off\\").compile(dialect=sqlite.dialect())

    assert "ESCAPE" in str(compiled)
    assert set(compiled.params.values()) == {"%50\\%\\_off\\\\%"}
