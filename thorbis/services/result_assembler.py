"""
Execute compiled searches and shape ORM rows into the public response models.

Each include key maps to an ``IncludeSpec``: the loader option that hydrates
it and the serializer that renders it. Only requested includes are loaded and
only requested includes appear in the output.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from thorbis.core.exceptions import NotFoundError
from thorbis.models import (
    Business,
    BusinessFeature,
    BusinessHours,
    BusinessMetrics,
    BusinessPhoto,
    Category,
    Review,
    User,
    business_categories,
)
from thorbis.models.enums import BusinessStatus, ReviewStatus
from thorbis.schemas.auth import Viewer
from thorbis.schemas.business import (
    BusinessDetailParams,
    BusinessOut,
    BusinessSearchParams,
    CategoryOut,
    CoordinatesOut,
    HoursOut,
    MetricsOut,
    OwnerOut,
    PaginationMeta,
    PermissionsOut,
    PhotoOut,
    ReviewAuthorOut,
    ReviewOut,
    SimilarBusinessOut,
)
from thorbis.services.filter_compiler import CompiledQuery, compile_search, visibility_predicate

logger = logging.getLogger(__name__)

LIST_REVIEWS_LIMIT = 10
SIMILAR_LIMIT = 6


# ============== Serializers ==============

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _hhmm(value) -> str | None:
    return value.strftime("%H:%M") if value else None


def photo_out(photo: BusinessPhoto) -> PhotoOut:
    return PhotoOut(
        id=str(photo.id),
        url=photo.url,
        alt_text=photo.alt_text,
        caption=photo.caption,
        is_primary=bool(photo.is_primary),
        order=photo.sort_order or 0,
    )


def category_out(category: Category) -> CategoryOut:
    return CategoryOut(
        id=str(category.id),
        name=category.name,
        slug=category.slug,
        icon=category.icon,
        color=category.color,
    )


def hours_out(hours: BusinessHours) -> HoursOut:
    return HoursOut(
        day_of_week=hours.day_of_week,
        open_time=_hhmm(hours.open_time),
        close_time=_hhmm(hours.close_time),
        is_closed=bool(hours.is_closed),
    )


def metrics_out(metrics: BusinessMetrics | None) -> MetricsOut | None:
    if metrics is None:
        return None
    return MetricsOut(
        views_today=metrics.views_today,
        views_this_week=metrics.views_this_week,
        views_this_month=metrics.views_this_month,
        clicks_today=metrics.clicks_today,
        calls_today=metrics.calls_today,
        directions_today=metrics.directions_today,
        updated_at=_iso(metrics.updated_at),
    )


def owner_out(owner: User | None) -> OwnerOut | None:
    if owner is None:
        return None
    return OwnerOut(id=str(owner.id), name=owner.name, email=owner.email, avatar_url=owner.avatar_url)


def review_out(review: Review) -> ReviewOut:
    author = None
    if review.user is not None:
        author = ReviewAuthorOut(id=str(review.user.id), name=review.user.name, avatar_url=review.user.avatar_url)
    return ReviewOut(
        id=str(review.id),
        rating=review.rating,
        title=review.title,
        text=review.text,
        photos=list(review.photos or []),
        helpful_count=review.helpful_count,
        verified_purchase=bool(review.verified_purchase),
        response=review.response,
        response_date=_iso(review.response_date),
        created_at=_iso(review.created_at),
        user=author,
    )


def primary_photo_url(business: Business) -> str | None:
    photos = list(business.photos)
    for photo in photos:
        if photo.is_primary:
            return photo.url
    return photos[0].url if photos else None


def similar_out(business: Business) -> SimilarBusinessOut:
    return SimilarBusinessOut(
        id=str(business.id),
        name=business.name,
        slug=business.slug,
        description=business.description,
        city=business.city,
        state=business.state,
        rating=business.rating or 0,
        review_count=business.review_count or 0,
        price_range=business.price_range,
        primary_photo=primary_photo_url(business),
    )


# ============== Include Registry ==============

@dataclass(frozen=True)
class IncludeSpec:
    loader: Callable[[], Any]
    serialize: Callable[[Business], Any]
    admin_only: bool = False


def _approved_reviews_loader():
    return selectinload(
        Business.reviews.and_(Review.status == ReviewStatus.APPROVED.value)
    ).selectinload(Review.user)


INCLUDES: dict[str, IncludeSpec] = {
    "photos": IncludeSpec(
        loader=lambda: selectinload(Business.photos),
        serialize=lambda b: [photo_out(p) for p in b.photos],
    ),
    "categories": IncludeSpec(
        loader=lambda: selectinload(Business.categories),
        serialize=lambda b: [category_out(c) for c in b.categories],
    ),
    "hours": IncludeSpec(
        loader=lambda: selectinload(Business.hours),
        serialize=lambda b: [hours_out(h) for h in b.hours],
    ),
    "metrics": IncludeSpec(
        loader=lambda: selectinload(Business.metrics),
        serialize=lambda b: metrics_out(b.metrics),
    ),
    "owner": IncludeSpec(
        loader=lambda: selectinload(Business.owner),
        serialize=lambda b: owner_out(b.owner),
        admin_only=True,
    ),
    "reviews": IncludeSpec(
        loader=_approved_reviews_loader,
        serialize=lambda b: [review_out(r) for r in b.reviews[:LIST_REVIEWS_LIMIT]],
    ),
}


def resolve_includes(requested: list[str], viewer: Viewer | None) -> list[str]:
    """Drop unknown keys and admin-only keys the viewer may not see."""
    is_admin = viewer is not None and viewer.is_admin
    resolved = []
    for key in dict.fromkeys(requested):
        include = INCLUDES.get(key)
        if include is None or (include.admin_only and not is_admin):
            continue
        resolved.append(key)
    return resolved


def loader_options(includes: list[str]) -> list:
    return [selectinload(Business.feature_tags)] + [INCLUDES[key].loader() for key in includes]


def business_out(business: Business, includes: list[str], distance: float | None = None) -> BusinessOut:
    data: dict[str, Any] = dict(
        id=str(business.id),
        name=business.name,
        slug=business.slug,
        description=business.description,
        address=business.address,
        city=business.city,
        state=business.state,
        zip_code=business.zip_code,
        country=business.country,
        phone=business.phone,
        website=business.website,
        email=business.email,
        social_media=business.social_media or {},
        rating=business.rating or 0,
        review_count=business.review_count or 0,
        price_range=business.price_range,
        features=business.features,
        verified=bool(business.verified),
        featured=bool(business.featured),
        coordinates=CoordinatesOut(lat=business.latitude, lng=business.longitude),
        status=business.status,
        created_at=_iso(business.created_at),
        updated_at=_iso(business.updated_at),
    )
    if distance is not None:
        data["distance_km"] = round(distance, 3)
    for key in includes:
        data[key] = INCLUDES[key].serialize(business)
    return BusinessOut(**data)


def dump(model: BusinessOut) -> dict:
    return model.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ============== Pagination & Facets ==============

def build_pagination(page: int, limit: int, total: int) -> PaginationMeta:
    pages = math.ceil(total / limit) if total > 0 else 0
    returned = max(0, min(limit, total - (page - 1) * limit))
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        pages=pages,
        returned=returned,
        has_next=page < pages,
        has_prev=page > 1,
    )


def empty_facets() -> dict:
    return {"categories": [], "priceRanges": [], "features": []}


async def compute_facets(db: AsyncSession, compiled: CompiledQuery) -> dict:
    """Counts over the whole filtered set, not just the current page."""
    ids = compiled.id_select()

    cat_count = func.count(business_categories.c.business_id).label("count")
    categories = await db.execute(
        select(Category.slug, Category.name, cat_count)
        .join(business_categories, business_categories.c.category_id == Category.id)
        .where(business_categories.c.business_id.in_(ids))
        .group_by(Category.id, Category.slug, Category.name)
        .order_by(cat_count.desc(), Category.name)
    )

    price_count = func.count(Business.id).label("count")
    prices = await db.execute(
        select(Business.price_range, price_count)
        .where(Business.id.in_(ids), Business.price_range.is_not(None))
        .group_by(Business.price_range)
        .order_by(Business.price_range)
    )

    tag_count = func.count(BusinessFeature.id).label("count")
    features = await db.execute(
        select(BusinessFeature.tag, tag_count)
        .where(BusinessFeature.business_id.in_(ids))
        .group_by(BusinessFeature.tag)
        .order_by(tag_count.desc(), BusinessFeature.tag)
    )

    return {
        "categories": [{"slug": slug, "name": name, "count": count} for slug, name, count in categories.all()],
        "priceRanges": [{"value": value, "count": count} for value, count in prices.all()],
        "features": [{"tag": tag, "count": count} for tag, count in features.all()],
    }


# ============== List ==============

@dataclass
class ListResult:
    businesses: list[dict]
    pagination: PaginationMeta
    facets: dict = field(default_factory=empty_facets)

    def is_empty(self) -> bool:
        """True when nothing matched at all, not merely when this page is past the end."""
        return self.pagination.total == 0


async def search_businesses(
    db: AsyncSession,
    params: BusinessSearchParams,
    viewer: Viewer | None = None,
    now: datetime | None = None,
) -> ListResult:
    compiled = compile_search(params, viewer, now)
    includes = resolve_includes(compiled.includes, viewer)

    total = (await db.execute(compiled.count_statement())).scalar_one()
    rows = (await db.execute(compiled.statement(*loader_options(includes)))).all()

    businesses = []
    for row in rows:
        distance = row[1] if compiled.distance is not None else None
        businesses.append(dump(business_out(row[0], includes, distance)))

    facets = await compute_facets(db, compiled) if total else empty_facets()
    return ListResult(
        businesses=businesses,
        pagination=build_pagination(params.page, params.limit, total),
        facets=facets,
    )


# ============== Detail ==============

REVIEW_ORDERS: dict[str, tuple] = {
    "newest": (Review.created_at.desc(),),
    "oldest": (Review.created_at.asc(),),
    "rating_high": (Review.rating.desc(), Review.created_at.desc()),
    "rating_low": (Review.rating.asc(), Review.created_at.desc()),
    "helpful": (Review.helpful_count.desc(), Review.created_at.desc()),
}


def identifier_predicate(identifier: str):
    """Match a business by UUID or by slug."""
    try:
        return Business.id == uuid.UUID(identifier)
    except ValueError:
        return Business.slug == identifier


async def load_visible_business(
    db: AsyncSession,
    identifier: str,
    viewer: Viewer | None,
    options: list | None = None,
) -> Business:
    result = await db.execute(
        select(Business)
        .where(identifier_predicate(identifier), visibility_predicate(viewer))
        .options(*(options or []))
    )
    business = result.scalar_one_or_none()
    if business is None:
        raise NotFoundError("Business not found", code="BUSINESS_NOT_FOUND")
    return business


async def fetch_reviews(db: AsyncSession, business_id: uuid.UUID, sort: str, limit: int) -> list[Review]:
    result = await db.execute(
        select(Review)
        .where(Review.business_id == business_id, Review.status == ReviewStatus.APPROVED.value)
        .order_by(*REVIEW_ORDERS.get(sort, REVIEW_ORDERS["newest"]), Review.id)
        .limit(limit)
        .options(selectinload(Review.user))
    )
    return list(result.scalars().all())


async def fetch_similar(db: AsyncSession, business: Business, limit: int = SIMILAR_LIMIT) -> list[Business]:
    category_ids = [c.id for c in business.categories]
    if not category_ids:
        return []
    result = await db.execute(
        select(Business)
        .where(
            Business.status == BusinessStatus.PUBLISHED.value,
            Business.id != business.id,
            Business.categories.any(Category.id.in_(category_ids)),
        )
        .order_by(Business.rating.desc(), Business.review_count.desc(), Business.id)
        .limit(limit)
        .options(selectinload(Business.photos))
    )
    return list(result.scalars().all())


def permissions_for(business: Business, viewer: Viewer | None) -> PermissionsOut | None:
    if viewer is None:
        return None
    is_owner = business.owner_id == viewer.id
    if not (is_owner or viewer.is_admin):
        return None
    return PermissionsOut(
        can_edit=True,
        can_delete=viewer.is_admin,
        can_manage_photos=True,
        can_manage_hours=True,
        can_respond_to_reviews=True,
        can_view_analytics=True,
    )


@dataclass
class DetailResult:
    business: dict
    business_id: uuid.UUID
    name: str
    status: str
    includes: list[str]


async def get_business_detail(
    db: AsyncSession,
    identifier: str,
    params: BusinessDetailParams,
    viewer: Viewer | None = None,
) -> DetailResult:
    requested = list(dict.fromkeys(params.include))
    includes = resolve_includes([k for k in requested if k != "reviews"], viewer)

    options = loader_options(includes)
    if "similar" in requested and "categories" not in includes:
        options.append(selectinload(Business.categories))
    business = await load_visible_business(db, identifier, viewer, options)

    out = business_out(business, includes)
    if "reviews" in requested:
        reviews = await fetch_reviews(db, business.id, params.reviews_sort, params.reviews_limit)
        out.reviews = [review_out(r) for r in reviews]
    if "similar" in requested:
        out.similar_businesses = [similar_out(b) for b in await fetch_similar(db, business)]
    permissions = permissions_for(business, viewer)
    if permissions is not None:
        out.permissions = permissions

    applied = includes + [k for k in ("reviews", "similar") if k in requested]
    return DetailResult(
        business=dump(out),
        business_id=business.id,
        name=business.name,
        status=business.status,
        includes=applied,
    )
