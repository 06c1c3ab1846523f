"""Flat search and map endpoints with the `{success, businesses, metadata}` envelope."""

import json
import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from thorbis.core.exceptions import ApiError, ValidationError
from thorbis.models.enums import DataSource
from thorbis.schemas.business import MapSearchParams, SimpleSearchParams
from thorbis.services.fallback import (
    CACHE_CONTROL_SHORT,
    ReadOutcome,
    fallback_policy,
    record_to_simple,
)
from thorbis.services.search_params import (
    parse_map_params,
    parse_simple_search_body,
    parse_simple_search_params,
)
from thorbis.services.simple_search import run_map_search, run_simple_search

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_MAP_BOUNDS = {"north": 37.8, "south": 37.7, "east": -122.4, "west": -122.5}


def _response_time(started: float) -> str:
    return f"{(time.perf_counter() - started) * 1000:.2f}ms"


def _simple_response(outcome: ReadOutcome, params: SimpleSearchParams, started: float) -> JSONResponse:
    if outcome.degraded:
        records = fallback_policy.records(params.query)
        page = records[params.offset:params.offset + params.limit]
        businesses = [record_to_simple(r) for r in page]
        total = len(records)
    else:
        businesses = outcome.result.businesses
        total = outcome.result.total

    metadata = {
        "total": total,
        "returned": len(businesses),
        "offset": params.offset,
        "limit": params.limit,
        "responseTime": _response_time(started),
        "query": params.query,
        "location": params.location,
        "category": params.category,
        "source": outcome.source.value,
    }
    if outcome.error:
        metadata["error"] = outcome.error
    return JSONResponse(
        {"success": True, "businesses": businesses, "metadata": metadata},
        headers={"Cache-Control": outcome.cache_control},
    )


async def _simple_search(params: SimpleSearchParams) -> JSONResponse:
    started = time.perf_counter()
    if params.mock:
        logger.debug("Using mock search data")
        return _simple_response(ReadOutcome(DataSource.MOCK), params, started)

    try:
        outcome = await fallback_policy.execute(
            lambda db: run_simple_search(db, params),
            has_filters=params.has_filters(),
            label="simple_search",
        )
        response = _simple_response(outcome, params, started)
    except ApiError:
        raise
    except Exception as exc:
        response = _simple_response(fallback_policy.emergency(exc, started), params, started)

    logger.debug("Business search completed in %s", _response_time(started))
    return response


# ============== Endpoints ==============

@router.get("/business/search")
async def search_businesses_get(request: Request):
    """Simple business search with offset pagination."""
    params = parse_simple_search_params(request.query_params)
    return await _simple_search(params)


@router.post("/business/search")
async def search_businesses_post(request: Request):
    """Advanced search; the JSON body carries filters, pagination and sort."""
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        logger.warning("Failed to parse search request body; using defaults")
        body = {}
    params = parse_simple_search_body(body)
    return await _simple_search(params)


@router.get("/biz")
async def businesses_in_bounds(request: Request):
    """Businesses inside a map viewport."""
    started = time.perf_counter()
    query = request.query_params.get("query", "")
    use_mock = request.query_params.get("mock") == "true"

    try:
        params = parse_map_params(request.query_params)
    except ValidationError as exc:
        if not use_mock:
            logger.warning("Invalid geographic bounds provided, serving fallback data: %s", exc.message)
            return _map_response(ReadOutcome(DataSource.FALLBACK), None, query, started, note="Invalid bounds provided")
        params = None

    if use_mock:
        return _map_response(ReadOutcome(DataSource.MOCK), params, query, started)

    try:
        outcome = await fallback_policy.execute(
            lambda db: run_map_search(db, params),
            has_filters=True,
            label="map_search",
        )
        return _map_response(outcome, params, query, started)
    except ApiError:
        raise
    except Exception as exc:
        return _map_response(fallback_policy.emergency(exc, started), params, query, started)


def _map_response(
    outcome: ReadOutcome,
    params: MapSearchParams | None,
    query: str,
    started: float,
    note: str | None = None,
) -> JSONResponse:
    if outcome.degraded:
        businesses = [record_to_simple(r) for r in fallback_policy.records(query)]
    else:
        businesses = outcome.result.businesses

    metadata = {
        "count": len(businesses),
        "total": len(businesses),
        "returned": len(businesses),
        "bounds": params.bounds() if params else DEFAULT_MAP_BOUNDS,
        "zoom": params.zoom if params else 10,
        "query": query,
        "responseTime": _response_time(started),
        "source": outcome.source.value,
    }
    if note:
        metadata["note"] = note
    if outcome.error:
        metadata["error"] = outcome.error
    return JSONResponse(
        {"success": True, "businesses": businesses, "metadata": metadata},
        headers={"Cache-Control": CACHE_CONTROL_SHORT},
    )
