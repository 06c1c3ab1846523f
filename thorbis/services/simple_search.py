"""Queries behind the flat /api/business/search and /api/biz endpoints."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.models import Business
from thorbis.schemas.business import (
    CoordinatesOut,
    MapSearchParams,
    SimpleBusinessOut,
    SimpleSearchParams,
)
from thorbis.services.filter_compiler import (
    RELEVANCE,
    CompiledQuery,
    bounds_predicate,
    category_predicate,
    location_predicate,
    text_predicate,
    visibility_predicate,
)
from thorbis.services.result_assembler import loader_options

CARD_INCLUDES = ["photos", "categories"]


@dataclass
class SimpleResult:
    businesses: list[dict]
    total: int


def simple_out(business: Business) -> dict:
    return SimpleBusinessOut(
        id=str(business.id),
        name=business.name,
        slug=business.slug,
        description=business.description,
        coordinates=CoordinatesOut(lat=business.latitude, lng=business.longitude),
        address=business.address,
        city=business.city,
        state=business.state,
        phone=business.phone,
        website=business.website,
        rating=business.rating or 0,
        review_count=business.review_count or 0,
        categories=[c.name for c in business.categories],
        price_range=business.price_range,
        featured=bool(business.featured),
        verified=bool(business.verified),
        photos=[p.url for p in business.photos],
    ).model_dump(mode="json", by_alias=True)


def simple_order(field: str, order: str) -> list:
    ascending = order == "asc"
    if field == "rating":
        clauses = [Business.rating.asc() if ascending else Business.rating.desc(), Business.review_count.desc()]
    elif field == "name":
        clauses = [Business.name.asc() if ascending else Business.name.desc()]
    else:
        # No center point on this endpoint, so distance sorts like relevance.
        clauses = list(RELEVANCE)
    return clauses + [Business.id.asc()]


def simple_predicates(params: SimpleSearchParams) -> list[ColumnElement[bool]]:
    predicates = [visibility_predicate(None)]
    if params.query.strip():
        predicates.append(text_predicate(params.query.strip()))
    if params.location.strip():
        predicates.append(location_predicate(params.location.strip()))
    if params.category.strip():
        predicates.append(category_predicate([params.category.strip()]))
    if params.featured is not None:
        predicates.append(Business.featured.is_(params.featured))
    if params.verified is not None:
        predicates.append(Business.verified.is_(params.verified))
    if params.rating:
        predicates.append(Business.rating >= params.rating)
    if params.price_range is not None:
        predicates.append(Business.price_range == params.price_range.value)
    return predicates


async def _run(db: AsyncSession, compiled: CompiledQuery) -> SimpleResult:
    total = (await db.execute(compiled.count_statement())).scalar_one()
    rows = (await db.execute(compiled.statement(*loader_options(CARD_INCLUDES)))).scalars().all()
    return SimpleResult(businesses=[simple_out(b) for b in rows], total=total)


async def run_simple_search(db: AsyncSession, params: SimpleSearchParams) -> SimpleResult:
    compiled = CompiledQuery(
        predicates=simple_predicates(params),
        order_by=simple_order(params.sort_field, params.sort_order),
        offset=params.offset,
        limit=params.limit,
        includes=CARD_INCLUDES,
    )
    return await _run(db, compiled)


async def run_map_search(db: AsyncSession, params: MapSearchParams) -> SimpleResult:
    predicates = [
        visibility_predicate(None),
        Business.latitude.is_not(None),
        Business.longitude.is_not(None),
        bounds_predicate(params.north, params.south, params.east, params.west),
    ]
    if params.query.strip():
        predicates.append(text_predicate(params.query.strip()))
    compiled = CompiledQuery(
        predicates=predicates,
        order_by=list(RELEVANCE) + [Business.id.asc()],
        offset=0,
        limit=params.effective_limit,
        includes=CARD_INCLUDES,
    )
    return await _run(db, compiled)
