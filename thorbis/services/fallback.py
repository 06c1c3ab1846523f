"""
Degraded-read policy shared by every read endpoint.

A read walks ATTEMPT_BACKEND -> EXECUTE_QUERY -> CHECK_EMPTY and ends in
``database``, ``fallback`` or ``emergency_fallback``. Degraded outcomes are
still HTTP 200; callers branch on ``source``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.core import database
from thorbis.core.exceptions import ApiError
from thorbis.models.enums import DataSource
from thorbis.schemas.business import (
    BusinessOut,
    CategoryOut,
    CoordinatesOut,
    PhotoOut,
    SimpleBusinessOut,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CACHE_CONTROL_SUCCESS = "public, max-age=180, stale-while-revalidate=360"
CACHE_CONTROL_SHORT = "public, max-age=60, stale-while-revalidate=120"
CACHE_CONTROL_PRIVATE = "private, no-cache"


# ============== Fixed Dataset ==============

FALLBACK_BUSINESSES: list[dict[str, Any]] = [
    {
        "id": "search-1",
        "name": "Pizza Palace",
        "slug": "pizza-palace",
        "description": "Authentic Italian pizza with fresh ingredients.",
        "address": "789 Pizza St",
        "city": "San Francisco",
        "state": "CA",
        "latitude": 37.7649,
        "longitude": -122.4294,
        "phone": "(555) 111-2222",
        "website": "https://example-pizza.com",
        "rating": 4.7,
        "review_count": 234,
        "price_range": "$$",
        "featured": True,
        "verified": True,
        "photos": ["https://images.unsplash.com/photo-1513104890138-7c749659a591?w=400"],
        "categories": [("pizza", "Pizza")],
    },
    {
        "id": "search-2",
        "name": "Tech Solutions Hub",
        "slug": "tech-solutions-hub",
        "description": "Professional IT services and computer repair.",
        "address": "321 Tech Ave",
        "city": "San Francisco",
        "state": "CA",
        "latitude": 37.7849,
        "longitude": -122.4194,
        "phone": "(555) 333-4444",
        "website": "https://example-tech.com",
        "rating": 4.3,
        "review_count": 156,
        "price_range": "$$$",
        "featured": False,
        "verified": True,
        "photos": ["https://images.unsplash.com/photo-1518709268805-4e9042af2176?w=400"],
        "categories": [("technology", "Technology")],
    },
    {
        "id": "map-1",
        "name": "Downtown Deli",
        "slug": "downtown-deli",
        "description": "Fresh sandwiches and salads in the heart of downtown.",
        "address": "101 Market St",
        "city": "San Francisco",
        "state": "CA",
        "latitude": 37.7849,
        "longitude": -122.4094,
        "phone": "(555) 555-1010",
        "website": "https://example-deli.com",
        "rating": 4.4,
        "review_count": 98,
        "price_range": "$$",
        "featured": True,
        "verified": True,
        "photos": ["https://images.unsplash.com/photo-1555396273-367ea4eb4db5?w=400"],
        "categories": [("deli", "Deli")],
    },
    {
        "id": "map-2",
        "name": "Neighborhood Gym",
        "slug": "neighborhood-gym",
        "description": "Full-service fitness center with modern equipment.",
        "address": "567 Fitness Blvd",
        "city": "San Francisco",
        "state": "CA",
        "latitude": 37.7749,
        "longitude": -122.4194,
        "phone": "(555) 555-2020",
        "website": "https://example-gym.com",
        "rating": 4.1,
        "review_count": 203,
        "price_range": "$$$",
        "featured": False,
        "verified": True,
        "photos": ["https://images.unsplash.com/photo-1534438327276-14e5300c3a48?w=400"],
        "categories": [("fitness", "Fitness")],
    },
    {
        "id": "map-3",
        "name": "Artisan Bakery",
        "slug": "artisan-bakery",
        "description": "Handcrafted breads and pastries made daily.",
        "address": "890 Baker St",
        "city": "San Francisco",
        "state": "CA",
        "latitude": 37.7649,
        "longitude": -122.4294,
        "phone": "(555) 555-3030",
        "website": "https://example-bakery.com",
        "rating": 4.8,
        "review_count": 156,
        "price_range": "$$",
        "featured": True,
        "verified": True,
        "photos": ["https://images.unsplash.com/photo-1509440159596-0249088772ff?w=400"],
        "categories": [("bakery", "Bakery")],
    },
]


def record_to_simple(record: dict[str, Any]) -> dict:
    return SimpleBusinessOut(
        id=record["id"],
        name=record["name"],
        slug=record["slug"],
        description=record["description"],
        coordinates=CoordinatesOut(lat=record["latitude"], lng=record["longitude"]),
        address=record["address"],
        city=record["city"],
        state=record["state"],
        phone=record["phone"],
        website=record["website"],
        rating=record["rating"],
        review_count=record["review_count"],
        categories=[name for _, name in record["categories"]],
        price_range=record["price_range"],
        featured=record["featured"],
        verified=record["verified"],
        photos=list(record["photos"]),
    ).model_dump(mode="json", by_alias=True)


def record_to_business(record: dict[str, Any]) -> dict:
    return BusinessOut(
        id=record["id"],
        name=record["name"],
        slug=record["slug"],
        description=record["description"],
        address=record["address"],
        city=record["city"],
        state=record["state"],
        country="US",
        phone=record["phone"],
        website=record["website"],
        rating=record["rating"],
        review_count=record["review_count"],
        price_range=record["price_range"],
        verified=record["verified"],
        featured=record["featured"],
        coordinates=CoordinatesOut(lat=record["latitude"], lng=record["longitude"]),
        status="published",
        photos=[
            PhotoOut(id=f"{record['id']}-photo-{i}", url=url, is_primary=i == 0, order=i)
            for i, url in enumerate(record["photos"])
        ],
        categories=[CategoryOut(id=slug, name=name, slug=slug) for slug, name in record["categories"]],
    ).model_dump(mode="json", by_alias=True, exclude_unset=True)


# ============== Policy ==============

@dataclass
class ReadOutcome(Generic[T]):
    source: DataSource
    result: T | None = None
    error: str | None = None
    elapsed_ms: float = 0.0

    @property
    def degraded(self) -> bool:
        return self.source != DataSource.DATABASE

    @property
    def cache_control(self) -> str:
        return CACHE_CONTROL_SHORT if self.degraded else CACHE_CONTROL_SUCCESS

    @property
    def response_time(self) -> str:
        return f"{self.elapsed_ms:.2f}ms"


def _is_empty(result: Any) -> bool:
    rows = getattr(result, "businesses", result)
    return not rows


class FallbackPolicy:
    """Runs a read against the backend and substitutes the fixed dataset when it cannot."""

    def __init__(self, dataset: list[dict[str, Any]] | None = None):
        self.dataset = dataset if dataset is not None else FALLBACK_BUSINESSES

    def records(self, query: str | None = None) -> list[dict[str, Any]]:
        if not query or not query.strip():
            return list(self.dataset)
        needle = query.strip().lower()
        return [
            r for r in self.dataset
            if needle in r["name"].lower() or needle in (r["description"] or "").lower()
        ]

    def find(self, identifier: str) -> dict[str, Any] | None:
        for record in self.dataset:
            if identifier in (record["id"], record["slug"]):
                return record
        return None

    async def execute(
        self,
        operation: Callable[[AsyncSession], Awaitable[T]],
        *,
        has_filters: bool = True,
        is_empty: Callable[[T], bool] = _is_empty,
        label: str = "read",
    ) -> ReadOutcome[T]:
        started = time.perf_counter()

        def done(source: DataSource, result: T | None = None, error: str | None = None) -> ReadOutcome[T]:
            return ReadOutcome(source, result, error, (time.perf_counter() - started) * 1000)

        try:
            try:
                sessionmaker = database.get_sessionmaker()
            except Exception as exc:
                logger.warning("%s: storage backend unavailable, serving fallback data: %s", label, exc)
                return done(DataSource.FALLBACK)

            try:
                async with sessionmaker() as db:
                    result = await operation(db)
            except (SQLAlchemyError, OSError) as exc:
                logger.warning("%s: backend query failed, serving fallback data: %s", label, exc)
                return done(DataSource.FALLBACK, error=str(exc))

            if not has_filters and is_empty(result):
                logger.info("%s: unfiltered query returned no rows, serving fallback data", label)
                return done(DataSource.FALLBACK)

            return done(DataSource.DATABASE, result)
        except ApiError:
            raise
        except Exception as exc:
            logger.exception("%s: unexpected error, serving emergency fallback", label)
            return done(DataSource.EMERGENCY_FALLBACK, error=str(exc))

    def emergency(self, exc: Exception, started: float) -> ReadOutcome:
        logger.exception("Rendering failed, serving emergency fallback")
        return ReadOutcome(DataSource.EMERGENCY_FALLBACK, None, str(exc), (time.perf_counter() - started) * 1000)


fallback_policy = FallbackPolicy()
