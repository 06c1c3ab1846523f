import logging
import re
import uuid
from datetime import time

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from thorbis.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidCategoriesError,
    NotFoundError,
    UnauthorizedError,
)
from thorbis.core.logging import log_event
from thorbis.models import (
    Business,
    BusinessFeature,
    BusinessHours,
    BusinessMetrics,
    Category,
    User,
)
from thorbis.models.enums import BusinessStatus
from thorbis.models.utils import utcnow
from thorbis.schemas.auth import Viewer
from thorbis.schemas.business import (
    DAY_NUMBERS,
    DEFAULT_DETAIL_INCLUDES,
    BusinessCreate,
    BusinessUpdate,
    HoursEntry,
)
from thorbis.services.geocoding import GeocodingClient, full_address
from thorbis.services.result_assembler import identifier_predicate, loader_options

logger = logging.getLogger(__name__)

SUBMITTED_MESSAGE = "Business submitted successfully and is pending approval."
NEXT_STEPS = [
    "Your business is under review",
    "You will receive an email when approved",
    "Add photos to make your listing more attractive",
    "Complete your business profile",
]

# Columns copied straight from the update payload.
SIMPLE_FIELDS = (
    "name",
    "description",
    "address",
    "city",
    "state",
    "zip_code",
    "phone",
    "email",
    "latitude",
    "longitude",
)
ADDRESS_FIELDS = {"address", "city", "state", "zip_code"}


def slugify(name: str) -> str:
    slug = name.lower()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug or "business"


def _unique(values: list[str]) -> list[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def _hours_rows(business_id: uuid.UUID, hours: dict[str, HoursEntry]) -> list[BusinessHours]:
    rows = []
    for day_name, entry in hours.items():
        open_time: time | None = None if entry.closed else entry.open
        close_time: time | None = None if entry.closed else entry.close
        rows.append(
            BusinessHours(
                business_id=business_id,
                day_of_week=DAY_NUMBERS[day_name],
                open_time=open_time,
                close_time=close_time,
                is_closed=entry.closed,
            )
        )
    return rows


class BusinessService:
    """
    Create, update and soft-delete businesses.
    Each operation runs in the session's single transaction and commits once.
    """

    def __init__(self, db: AsyncSession, geocoder: GeocodingClient | None = None):
        self.db = db
        self.geocoder = geocoder or GeocodingClient()

    # ============== Helpers ==============

    async def unique_slug(self, base: str, exclude_id: uuid.UUID | None = None) -> str:
        """First free slug among ``base``, ``base-1``, ``base-2``..."""
        slug = base
        counter = 1
        while True:
            stmt = select(Business.id).where(Business.slug == slug)
            if exclude_id is not None:
                stmt = stmt.where(Business.id != exclude_id)
            if (await self.db.execute(stmt)).first() is None:
                return slug
            slug = f"{base}-{counter}"
            counter += 1

    async def resolve_categories(self, slugs: list[str]) -> list[Category]:
        wanted = _unique(slugs)
        result = await self.db.execute(select(Category).where(Category.slug.in_(wanted)))
        categories = list(result.scalars().all())
        if len(categories) != len(wanted):
            found = {c.slug for c in categories}
            raise InvalidCategoriesError(
                "One or more categories are invalid",
                details={"invalid": [s for s in wanted if s not in found]},
            )
        return sorted(categories, key=lambda c: wanted.index(c.slug))

    async def ensure_owner(self, viewer: Viewer) -> User:
        user = await self.db.get(User, viewer.id)
        if user is not None:
            return user
        if not viewer.email:
            raise UnauthorizedError("User profile not found", code="USER_NOT_FOUND")
        user = User(
            id=viewer.id,
            email=viewer.email,
            role=viewer.role.value,
            email_verified=viewer.email_verified,
        )
        self.db.add(user)
        return user

    async def geocode(self, address: str, city: str, state: str, zip_code: str) -> tuple[float, float] | None:
        return await self.geocoder.geocode(full_address(address, city, state, zip_code))

    async def replace_hours(self, business_id: uuid.UUID, hours: dict[str, HoursEntry]) -> None:
        await self.db.execute(delete(BusinessHours).where(BusinessHours.business_id == business_id))
        self.db.add_all(_hours_rows(business_id, hours))
        await self.db.flush()

    async def replace_features(self, business_id: uuid.UUID, features: list[str]) -> None:
        await self.db.execute(delete(BusinessFeature).where(BusinessFeature.business_id == business_id))
        self.db.add_all(BusinessFeature(business_id=business_id, tag=tag) for tag in _unique(features))
        await self.db.flush()

    async def get_for_mutation(self, identifier: str) -> Business:
        result = await self.db.execute(
            select(Business)
            .where(identifier_predicate(identifier), Business.status != BusinessStatus.DELETED.value)
            .options(selectinload(Business.categories))
        )
        business = result.scalar_one_or_none()
        if business is None:
            raise NotFoundError("Business not found", code="BUSINESS_NOT_FOUND")
        return business

    async def reload(self, business_id: uuid.UUID, includes: list[str] | None = None) -> Business:
        includes = includes if includes is not None else DEFAULT_DETAIL_INCLUDES
        result = await self.db.execute(
            select(Business)
            .where(Business.id == business_id)
            .options(*loader_options(includes))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _commit(self, operation: str, business_id: uuid.UUID | None = None) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("%s failed for business %s", operation, business_id)
            raise ConflictError(f"Failed to {operation} business", code=f"{operation.upper()}_ERROR")

    # ============== Operations ==============

    async def create_business(self, payload: BusinessCreate, viewer: Viewer) -> Business:
        latitude, longitude = payload.latitude, payload.longitude
        if latitude is None or longitude is None:
            coords = await self.geocode(payload.address, payload.city, payload.state, payload.zip_code)
            if coords:
                latitude, longitude = coords

        categories = await self.resolve_categories(payload.categories)
        slug = await self.unique_slug(slugify(payload.name))
        await self.ensure_owner(viewer)

        business_id = uuid.uuid4()
        business = Business(
            id=business_id,
            name=payload.name,
            slug=slug,
            description=payload.description,
            address=payload.address,
            city=payload.city,
            state=payload.state,
            zip_code=payload.zip_code,
            country=payload.country,
            phone=payload.phone,
            website=str(payload.website) if payload.website else None,
            email=str(payload.email) if payload.email else None,
            social_media=payload.social_media.model_dump(exclude_none=True) if payload.social_media else {},
            price_range=payload.price_range.value if payload.price_range else None,
            latitude=latitude,
            longitude=longitude,
            owner_id=viewer.id,
            status=BusinessStatus.PENDING.value,
            verified=False,
            rating=0.0,
            review_count=0,
        )
        business.categories = categories
        business.feature_tags = [BusinessFeature(tag=tag) for tag in _unique(payload.features)]
        business.hours = _hours_rows(business_id, payload.hours or {})
        business.metrics = BusinessMetrics()
        self.db.add(business)

        await self._commit("create", business_id)

        log_event(
            "business_created",
            business_id=str(business_id),
            business_name=payload.name,
            user_id=str(viewer.id),
            categories=[c.slug for c in categories],
            location={"city": payload.city, "state": payload.state, "country": payload.country},
        )
        return await self.reload(business_id)

    async def update_business(self, identifier: str, payload: BusinessUpdate, viewer: Viewer) -> Business:
        business = await self.get_for_mutation(identifier)
        is_owner = business.owner_id == viewer.id
        if not (is_owner or viewer.is_admin):
            raise ForbiddenError("You do not have permission to update this business")

        fields = payload.model_fields_set
        for name in SIMPLE_FIELDS:
            if name in fields:
                value = getattr(payload, name)
                if name == "name" and value is None:
                    continue
                if name == "email" and value is not None:
                    value = str(value)
                setattr(business, name, value)
        if "website" in fields:
            business.website = str(payload.website) if payload.website else None
        if "price_range" in fields:
            business.price_range = payload.price_range.value if payload.price_range else None
        if payload.social_media is not None:
            business.social_media = payload.social_media.model_dump(exclude_none=True)

        if "name" in fields and payload.name:
            business.slug = await self.unique_slug(slugify(payload.name), exclude_id=business.id)

        if fields & ADDRESS_FIELDS and not ({"latitude", "longitude"} & fields):
            coords = await self.geocode(business.address or "", business.city or "", business.state or "", business.zip_code or "")
            if coords:
                business.latitude, business.longitude = coords

        if payload.categories is not None:
            business.categories = await self.resolve_categories(payload.categories)
        if payload.features is not None:
            await self.replace_features(business.id, payload.features)
        if payload.hours is not None:
            await self.replace_hours(business.id, payload.hours)

        if viewer.is_admin and business.status == BusinessStatus.PENDING.value:
            business.status = BusinessStatus.PUBLISHED.value
        business.updated_at = utcnow()

        business_id = business.id
        await self._commit("update", business_id)

        log_event(
            "business_updated",
            business_id=str(business_id),
            business_name=business.name,
            user_id=str(viewer.id),
            updated_fields=sorted(fields),
        )
        return await self.reload(business_id)

    async def delete_business(self, identifier: str, viewer: Viewer) -> Business:
        business = await self.get_for_mutation(identifier)
        if not viewer.is_admin:
            raise ForbiddenError("Only administrators can delete businesses")

        now = utcnow()
        business.status = BusinessStatus.DELETED.value
        business.deleted_at = now
        business.updated_at = now
        await self._commit("delete", business.id)

        log_event(
            "business_deleted",
            business_id=str(business.id),
            business_name=business.name,
            user_id=str(viewer.id),
        )
        return business
