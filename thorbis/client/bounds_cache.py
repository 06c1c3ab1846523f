"""
Viewport-driven business store for map clients.

Fetches businesses for the visible bounds from ``/api/biz``, keeps a
per-bounds cache and narrows the fetched set to the current viewport.
Each fetch takes a request token; only the latest token may commit, so a
slow response for an old viewport never overwrites a newer one.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Protocol

import httpx

from thorbis.core.geo import point_in_bounds

logger = logging.getLogger(__name__)

BOUNDS_KEYS = ("north", "south", "east", "west")
RESET_ZOOM = 10


class MapCamera(Protocol):
    def once(self, event: str, callback: Callable[[], None]) -> None: ...

    def fly_to(self, *, zoom: int) -> None: ...


def bounds_key(bounds: dict[str, float]) -> str:
    return json.dumps({k: bounds[k] for k in BOUNDS_KEYS}, sort_keys=True)


def _inside(business: dict[str, Any], bounds: dict[str, float]) -> bool:
    coords = business.get("coordinates") or {}
    lat, lng = coords.get("lat"), coords.get("lng")
    if lat is None or lng is None:
        return False
    return point_in_bounds(lat, lng, bounds["north"], bounds["south"], bounds["east"], bounds["west"])


class BusinessBoundsStore:
    def __init__(
        self,
        client: httpx.AsyncClient,
        camera: MapCamera | None = None,
        debounce_seconds: float = 0.3,
    ):
        self.client = client
        self.camera = camera
        self.debounce_seconds = debounce_seconds

        self.all_businesses: list[dict[str, Any]] = []
        self.filtered_businesses: list[dict[str, Any]] = []
        self.active_business_id: str | None = None
        self.selected_business: dict[str, Any] | None = None
        self.prev_bounds: dict[str, float] | None = None
        self.cache: dict[str, list[dict[str, Any]]] = {}
        self.prevent_fetch = False
        self.loading = False
        self.initial_load = True

        self._latest_token = 0
        self._pending: asyncio.Task | None = None

    # ============== Fetching ==============

    def _should_skip(self, bounds: dict[str, float] | None, zoom: float | None) -> bool:
        if not bounds or not zoom:
            logger.warning("Bounds or zoom value is missing: %s %s", bounds, zoom)
            return True
        if self.active_business_id or self.prevent_fetch:
            logger.debug("Skipping fetch; active business %s, prevent_fetch=%s", self.active_business_id, self.prevent_fetch)
            return True
        return False

    async def _fetch(self, bounds: dict[str, float], zoom: float, query: str | None) -> bool:
        self._latest_token += 1
        token = self._latest_token
        self.loading = True

        params: dict[str, Any] = {k: bounds[k] for k in BOUNDS_KEYS}
        params["zoom"] = zoom
        if query:
            params["query"] = query

        try:
            response = await self.client.get("/api/biz", params=params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to fetch businesses: %s", exc)
            if token == self._latest_token:
                self.loading = False
            return False

        businesses = payload.get("businesses") if isinstance(payload, dict) else None
        if not isinstance(businesses, list):
            businesses = []

        self.cache[bounds_key(bounds)] = businesses
        if token != self._latest_token:
            logger.debug("Discarding stale response for %s", bounds_key(bounds))
            return False

        self.all_businesses = businesses
        self.loading = False
        self.initial_load = False
        # Force re-filtering against the new result set.
        self.prev_bounds = None
        self.filter_businesses_by_bounds(bounds)
        return True

    async def fetch_initial_businesses(
        self, bounds: dict[str, float] | None, zoom: float | None, query: str | None = None
    ) -> bool:
        """Fetch businesses for the first viewport. Returns True when the result was committed."""
        if self._should_skip(bounds, zoom):
            return False
        return await self._fetch(bounds, zoom, query)

    def fetch_filtered_businesses(
        self, bounds: dict[str, float] | None, zoom: float | None, query: str | None = None
    ) -> asyncio.Task:
        """Debounced fetch; a call within the debounce window cancels the previous one."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.ensure_future(self._debounced(bounds, zoom, query))
        return self._pending

    async def _debounced(self, bounds, zoom, query) -> bool:
        await asyncio.sleep(self.debounce_seconds)
        if self._should_skip(bounds, zoom):
            return False
        return await self._fetch(bounds, zoom, query)

    # ============== Viewport ==============

    def filter_businesses_by_bounds(self, bounds: dict[str, float]) -> None:
        if self.prev_bounds is not None and bounds_key(self.prev_bounds) == bounds_key(bounds):
            logger.debug("Bounds unchanged; skipping filtering")
            return

        self.filtered_businesses = [b for b in self.all_businesses if _inside(b, bounds)]

        if self.active_business_id:
            active = next((b for b in self.all_businesses if b.get("id") == self.active_business_id), None)
            if active is not None and not _inside(active, bounds):
                logger.debug("Active business %s left the viewport", self.active_business_id)
                self.active_business_id = None

        self.prev_bounds = dict(bounds)

    def set_active_business_id(self, business_id: str | None) -> None:
        previous = self.active_business_id
        if business_id == previous:
            return

        self.active_business_id = business_id or None
        if not business_id and previous is not None and self.camera is not None:
            self.prevent_fetch = True
            self.camera.once("moveend", self._allow_fetch)
            self.camera.fly_to(zoom=RESET_ZOOM)

    def _allow_fetch(self) -> None:
        self.prevent_fetch = False

    def set_selected_business(self, business: dict[str, Any] | None) -> None:
        self.selected_business = business

    def clear_selected_business(self) -> None:
        self.selected_business = None

    def clear_filtered_businesses(self) -> None:
        self.filtered_businesses = []
