from __future__ import annotations

import time
import uuid

from fastapi import BackgroundTasks, Request

from thorbis.schemas.auth import Viewer
from thorbis.schemas.business import PerformanceMeta
from thorbis.services.analytics import increment_business_views, track_business_view
from thorbis.services.fallback import (
    CACHE_CONTROL_PRIVATE,
    CACHE_CONTROL_SHORT,
    CACHE_CONTROL_SUCCESS,
)


def performance_meta(started: float, cache_hit: bool = False) -> dict:
    query_time = round((time.perf_counter() - started) * 1000, 2)
    return PerformanceMeta(query_time=query_time, cache_hit=cache_hit).model_dump(by_alias=True)


def cache_headers(viewer: Viewer | None, degraded: bool) -> dict[str, str]:
    """Shared caches may keep anonymous reads only."""
    if viewer is not None:
        return {"Cache-Control": CACHE_CONTROL_PRIVATE}
    return {"Cache-Control": CACHE_CONTROL_SHORT if degraded else CACHE_CONTROL_SUCCESS}


def schedule_view_tracking(
    background_tasks: BackgroundTasks,
    request: Request,
    viewer: Viewer | None,
    business_id: uuid.UUID,
    business_name: str,
) -> None:
    """Queue the view counter bump and analytics record to run after the response."""
    background_tasks.add_task(increment_business_views, business_id)
    background_tasks.add_task(
        track_business_view,
        business_id,
        business_name,
        viewer.id if viewer else None,
        request.headers.get("referer") or "direct",
        request.headers.get("user-agent"),
    )
