import copy
import time

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.api.deps import get_current_viewer, get_optional_viewer, require_verified_email
from thorbis.api.responses import elapsed_ms, success_response
from thorbis.core.database import get_db
from thorbis.core.exceptions import ApiError, NotFoundError
from thorbis.core.logging import log_event
from thorbis.models.enums import BusinessStatus
from thorbis.schemas.auth import Viewer
from thorbis.schemas.business import DEFAULT_DETAIL_INCLUDES, BusinessCreate, BusinessUpdate
from thorbis.services.business_service import NEXT_STEPS, SUBMITTED_MESSAGE, BusinessService
from thorbis.services.cache import response_cache
from thorbis.services.fallback import (
    CACHE_CONTROL_PRIVATE,
    fallback_policy,
    record_to_business,
)
from thorbis.services.geocoding import GeocodingClient
from thorbis.services.notifications import NotificationClient, send_approval_notification
from thorbis.services.result_assembler import (
    ListResult,
    build_pagination,
    business_out,
    dump,
    empty_facets,
    get_business_detail,
    search_businesses,
)
from thorbis.services.search_params import parse_detail_params, parse_search_params

from .business_helpers import cache_headers, performance_meta, schedule_view_tracking

router = APIRouter()


# ============== Collaborators ==============

def get_geocoder() -> GeocodingClient:
    return GeocodingClient()


def get_notifier() -> NotificationClient:
    return NotificationClient()


# ============== Endpoints ==============

@router.get("")
async def list_businesses(
    request: Request,
    viewer: Viewer | None = Depends(get_optional_viewer),
):
    """Search businesses with filters, includes, pagination and facets."""
    started = time.perf_counter()
    params = parse_search_params(request.query_params)

    cache_key = None
    if viewer is None and params.open == "any":
        cache_key = response_cache.make_key("businesses:list", params.model_dump(mode="json", by_alias=True))
        cached = response_cache.get(cache_key)
        if cached is not None:
            body = copy.deepcopy(cached)
            body["meta"]["performance"] = performance_meta(started, cache_hit=True)
            return success_response(body["data"], body["meta"], headers=cache_headers(viewer, degraded=False))

    try:
        outcome = await fallback_policy.execute(
            lambda db: search_businesses(db, params, viewer),
            has_filters=params.has_filters(),
            is_empty=ListResult.is_empty,
            label="business_search",
        )
        if outcome.degraded:
            records = fallback_policy.records(params.query)
            page = records[params.offset:params.offset + params.limit]
            result = ListResult(
                businesses=[record_to_business(r) for r in page],
                pagination=build_pagination(params.page, params.limit, len(records)),
                facets=empty_facets(),
            )
        else:
            result = outcome.result
    except ApiError:
        raise
    except Exception as exc:
        outcome = fallback_policy.emergency(exc, started)
        records = fallback_policy.records()
        result = ListResult(
            businesses=[record_to_business(r) for r in records[:params.limit]],
            pagination=build_pagination(1, params.limit, len(records)),
        )

    meta = {
        "pagination": result.pagination.model_dump(by_alias=True),
        "performance": performance_meta(started),
        "filters": params.echo(),
        "source": outcome.source.value,
        "responseTime": f"{elapsed_ms(started):.2f}ms",
    }
    if outcome.error:
        meta["error"] = outcome.error

    if not outcome.degraded:
        log_event(
            "business_search",
            query=params.query,
            location=params.location,
            category=params.category,
            results_count=len(result.businesses),
            user_id=str(viewer.id) if viewer else None,
            filters={
                "rating": params.rating,
                "price_range": params.price_range.value if params.price_range else None,
                "features": params.features,
                "verified": params.verified,
            },
        )

    body = {
        "success": True,
        "data": {"businesses": result.businesses, "facets": result.facets},
        "meta": meta,
    }
    if cache_key is not None and not outcome.degraded:
        response_cache.set(cache_key, body)
    return success_response(body["data"], meta, headers=cache_headers(viewer, outcome.degraded))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_business(
    payload: BusinessCreate,
    background_tasks: BackgroundTasks,
    viewer: Viewer = Depends(require_verified_email),
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
    notifier: NotificationClient = Depends(get_notifier),
):
    """Submit a new business; it stays pending until an admin approves it."""
    started = time.perf_counter()
    service = BusinessService(db, geocoder=geocoder)
    business = await service.create_business(payload, viewer)
    response_cache.clear()

    background_tasks.add_task(
        send_approval_notification, str(business.id), business.name, viewer.email, notifier
    )

    data = {
        "business": dump(business_out(business, DEFAULT_DETAIL_INCLUDES)),
        "message": SUBMITTED_MESSAGE,
        "nextSteps": NEXT_STEPS,
    }
    return success_response(
        data,
        {"performance": performance_meta(started)},
        status_code=status.HTTP_201_CREATED,
        headers={"Cache-Control": CACHE_CONTROL_PRIVATE},
    )


@router.get("/{business_id}")
async def get_business(
    business_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    viewer: Viewer | None = Depends(get_optional_viewer),
):
    """Get one business by id or slug with the requested includes."""
    started = time.perf_counter()
    params = parse_detail_params(request.query_params)

    cache_key = None
    if viewer is None:
        cache_key = response_cache.make_key(
            f"businesses:detail:{business_id}", params.model_dump(mode="json", by_alias=True)
        )
        cached = response_cache.get(cache_key)
        if cached is not None:
            body = copy.deepcopy(cached["body"])
            body["meta"]["performance"] = performance_meta(started, cache_hit=True)
            schedule_view_tracking(background_tasks, request, viewer, cached["business_id"], cached["name"])
            return success_response(body["data"], body["meta"], headers=cache_headers(viewer, degraded=False))

    outcome = await fallback_policy.execute(
        lambda db: get_business_detail(db, business_id, params, viewer),
        label="business_detail",
    )

    if outcome.degraded:
        record = fallback_policy.find(business_id)
        if record is None:
            raise NotFoundError("Business not found", code="BUSINESS_NOT_FOUND")
        data = {"business": record_to_business(record)}
        includes = ["photos", "categories"]
    else:
        detail = outcome.result
        data = {"business": detail.business}
        includes = detail.includes
        if detail.status == BusinessStatus.PUBLISHED.value:
            schedule_view_tracking(background_tasks, request, viewer, detail.business_id, detail.name)

    meta = {
        "performance": performance_meta(started),
        "includes": includes,
        "source": outcome.source.value,
    }
    if outcome.error:
        meta["error"] = outcome.error

    if cache_key is not None and not outcome.degraded and outcome.result.status == BusinessStatus.PUBLISHED.value:
        response_cache.set(
            cache_key,
            {
                "body": {"success": True, "data": data, "meta": meta},
                "business_id": outcome.result.business_id,
                "name": outcome.result.name,
            },
        )
    return success_response(data, meta, headers=cache_headers(viewer, outcome.degraded))


@router.put("/{business_id}")
async def update_business(
    business_id: str,
    payload: BusinessUpdate,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    """Update a business (owner or admin). Admin updates publish pending businesses."""
    started = time.perf_counter()
    service = BusinessService(db, geocoder=geocoder)
    business = await service.update_business(business_id, payload, viewer)
    response_cache.clear()

    data = {
        "business": dump(business_out(business, DEFAULT_DETAIL_INCLUDES)),
        "message": "Business updated successfully",
    }
    return success_response(data, {"performance": performance_meta(started)}, headers={"Cache-Control": CACHE_CONTROL_PRIVATE})


@router.delete("/{business_id}")
async def delete_business(
    business_id: str,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a business (admin only)."""
    started = time.perf_counter()
    service = BusinessService(db)
    business = await service.delete_business(business_id, viewer)
    response_cache.clear()

    data = {"businessId": str(business.id), "message": "Business deleted successfully"}
    return success_response(data, {"performance": performance_meta(started)}, headers={"Cache-Control": CACHE_CONTROL_PRIVATE})
