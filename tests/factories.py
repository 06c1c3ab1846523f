"""Row builders and auth helpers shared by the test modules."""

from datetime import time

from thorbis.api.deps import create_access_token
from thorbis.core import database
from thorbis.models import (
    Business,
    BusinessFeature,
    BusinessHours,
    BusinessMetrics,
    BusinessPhoto,
    Category,
    Review,
    User,
)
from thorbis.models.enums import BusinessStatus, UserRole
from thorbis.services.business_service import slugify

WEEKDAY_HOURS = {day: (time(9, 0), time(17, 0)) for day in range(1, 6)}


async def fresh(model, ident):
    """Load a row through a new session so earlier identity-map state does not leak in."""
    async with database.get_sessionmaker()() as s:
        return await s.get(model, ident)


async def seed_user(session, email="owner@example.com", role=UserRole.USER, name=None):
    user = User(email=email, role=role.value, name=name, email_verified=True)
    session.add(user)
    await session.flush()
    return user


async def seed_category(session, slug, name=None):
    category = Category(slug=slug, name=name or slug.replace("-", " ").title())
    session.add(category)
    await session.flush()
    return category


async def seed_business(
    session,
    owner,
    name,
    *,
    categories=(),
    features=(),
    photos=(),
    hours=None,
    status=BusinessStatus.PUBLISHED,
    rating=4.0,
    review_count=10,
    featured=False,
    verified=True,
    price_range="$$",
    latitude=37.7749,
    longitude=-122.4194,
    city="San Francisco",
    state="CA",
    description=None,
    slug=None,
):
    business = Business(
        name=name,
        slug=slug or slugify(name),
        description=description or f"{name} serving the neighborhood",
        address="100 Market St",
        city=city,
        state=state,
        zip_code="94105",
        country="US",
        rating=rating,
        review_count=review_count,
        featured=featured,
        verified=verified,
        price_range=price_range,
        latitude=latitude,
        longitude=longitude,
        owner_id=owner.id,
        status=status.value,
    )
    business.categories = list(categories)
    business.feature_tags = [BusinessFeature(tag=tag) for tag in features]
    business.photos = [
        BusinessPhoto(url=url, is_primary=i == 0, sort_order=i) for i, url in enumerate(photos)
    ]
    # A None opening time marks the day closed.
    business.hours = [
        BusinessHours(day_of_week=day, open_time=opens, close_time=closes, is_closed=opens is None)
        for day, (opens, closes) in (hours or {}).items()
    ]
    business.metrics = BusinessMetrics()
    session.add(business)
    await session.flush()
    return business


async def seed_review(session, business, user, rating, *, status="approved", created_at=None, helpful_count=0):
    review = Review(
        business_id=business.id,
        user_id=user.id,
        rating=rating,
        title=f"{rating} stars",
        text="Visited last week.",
        status=status,
        helpful_count=helpful_count,
    )
    if created_at is not None:
        review.created_at = created_at
    session.add(review)
    await session.flush()
    return review


def auth_headers(user_id, role=UserRole.USER, email="owner@example.com", email_verified=True):
    token, _ = create_access_token(user_id, role=role, email=email, email_verified=email_verified)
    return {"Authorization": f"Bearer {token}"}
