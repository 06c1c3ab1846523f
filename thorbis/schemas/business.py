from __future__ import annotations

from datetime import time
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    HttpUrl,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from thorbis.models.enums import PriceRange


# ============== Search / Query Parameters ==============

IncludeKey = Literal["photos", "reviews", "categories", "hours", "metrics", "owner", "similar"]
ListIncludeKey = Literal["photos", "reviews", "categories", "hours", "metrics", "owner"]
SortKey = Literal["relevance", "rating", "distance", "newest", "popular"]
OpenFilter = Literal["now", "today", "any"]
ReviewsSort = Literal["newest", "oldest", "rating_high", "rating_low", "helpful"]

DEFAULT_LIST_INCLUDES: list[str] = ["photos", "categories"]
DEFAULT_DETAIL_INCLUDES: list[str] = ["photos", "categories", "hours"]


class Bounds(BaseModel):
    north: float = Field(ge=-90, le=90)
    south: float = Field(ge=-90, le=90)
    east: float = Field(ge=-180, le=180)
    west: float = Field(ge=-180, le=180)

    @model_validator(mode="after")
    def check_south_below_north(self) -> "Bounds":
        if self.south > self.north:
            raise ValueError("south must not be greater than north")
        return self


class Center(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    radius: float = Field(default=10, gt=0, le=20000)  # km


class BusinessSearchParams(BaseModel):
    """Validated filter set for the business list endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query: str | None = Field(default=None, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    category: str | None = Field(default=None, max_length=140)
    categories: list[str] | None = None
    rating: float | None = Field(default=None, ge=1, le=5)
    price_range: PriceRange | None = Field(default=None, alias="priceRange")
    features: list[str] | None = None
    open: OpenFilter = "any"
    verified: bool | None = None
    featured: bool | None = None
    bounds: Bounds | None = None
    center: Center | None = None
    sort: SortKey = "relevance"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    include: list[ListIncludeKey] = Field(default_factory=lambda: list(DEFAULT_LIST_INCLUDES))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def has_filters(self) -> bool:
        return any(
            (
                self.query,
                self.location,
                self.category,
                self.categories,
                self.rating is not None,
                self.price_range is not None,
                self.features,
                self.open != "any",
                self.verified is not None,
                self.featured is not None,
                self.bounds is not None,
                self.center is not None,
            )
        )

    def echo(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BusinessDetailParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    include: list[IncludeKey] = Field(default_factory=lambda: list(DEFAULT_DETAIL_INCLUDES))
    reviews_limit: int = Field(default=10, ge=1, le=50, alias="reviewsLimit")
    reviews_sort: ReviewsSort = Field(default="newest", alias="reviewsSort")


# ============== Create / Update Payloads ==============

DAY_NUMBERS = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

DayName = Literal["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


class HoursEntry(BaseModel):
    open: time | None = None
    close: time | None = None
    closed: bool = False

    @model_validator(mode="after")
    def check_times_required_when_open(self) -> "HoursEntry":
        if not self.closed and (self.open is None or self.close is None):
            raise ValueError("open and close are required unless closed is true")
        return self


class SocialMedia(BaseModel):
    model_config = ConfigDict(extra="forbid")

    facebook: str | None = None
    instagram: str | None = None
    twitter: str | None = None
    linkedin: str | None = None


def _lower_day_keys(value):
    if isinstance(value, dict):
        return {str(k).strip().lower(): v for k, v in value.items()}
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class BusinessCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=2, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    address: str = Field(min_length=5)
    city: str = Field(min_length=2)
    state: str = Field(min_length=2)
    zip_code: str = Field(min_length=5, alias="zipCode")
    country: str = "US"
    phone: str | None = Field(default=None, max_length=40)
    website: HttpUrl | None = None
    email: EmailStr | None = None
    categories: list[str] = Field(min_length=1, max_length=5)
    price_range: PriceRange | None = Field(default=None, alias="priceRange")
    features: list[str] = Field(default_factory=list)
    hours: dict[DayName, HoursEntry] | None = None
    social_media: SocialMedia | None = Field(default=None, alias="socialMedia")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("hours", mode="before")
    @classmethod
    def lower_hours_keys(cls, value):
        return _lower_day_keys(value)

    @field_validator("website", "email", mode="before")
    @classmethod
    def blank_contact_to_none(cls, value):
        return _blank_to_none(value)


class BusinessUpdate(BaseModel):
    """Fields that can be updated. All optional, at least one required."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=2000)
    address: str | None = Field(default=None, min_length=5)
    city: str | None = Field(default=None, min_length=2)
    state: str | None = Field(default=None, min_length=2)
    zip_code: str | None = Field(default=None, min_length=5, alias="zipCode")
    phone: str | None = Field(default=None, max_length=40)
    website: HttpUrl | None = None
    email: EmailStr | None = None
    categories: list[str] | None = Field(default=None, min_length=1, max_length=5)
    price_range: PriceRange | None = Field(default=None, alias="priceRange")
    features: list[str] | None = None
    hours: dict[DayName, HoursEntry] | None = None
    social_media: SocialMedia | None = Field(default=None, alias="socialMedia")
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)

    @field_validator("hours", mode="before")
    @classmethod
    def lower_hours_keys(cls, value):
        return _lower_day_keys(value)

    @field_validator("website", "email", mode="before")
    @classmethod
    def blank_contact_to_none(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def check_at_least_one_field(self) -> "BusinessUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


# ============== Response Models ==============

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CoordinatesOut(ApiModel):
    lat: float | None = None
    lng: float | None = None


class CategoryOut(ApiModel):
    id: str
    name: str
    slug: str
    icon: str | None = None
    color: str | None = None


class PhotoOut(ApiModel):
    id: str
    url: str
    alt_text: str | None = None
    caption: str | None = None
    is_primary: bool = False
    order: int = 0


class HoursOut(ApiModel):
    day_of_week: int
    open_time: str | None = None
    close_time: str | None = None
    is_closed: bool = False


class MetricsOut(ApiModel):
    views_today: int = 0
    views_this_week: int = 0
    views_this_month: int = 0
    clicks_today: int = 0
    calls_today: int = 0
    directions_today: int = 0
    updated_at: str | None = None


class OwnerOut(ApiModel):
    id: str
    name: str | None = None
    email: str
    avatar_url: str | None = None


class ReviewAuthorOut(ApiModel):
    id: str
    name: str | None = None
    avatar_url: str | None = None


class ReviewOut(ApiModel):
    id: str
    rating: int
    title: str | None = None
    text: str | None = None
    photos: list[str] = []
    helpful_count: int = 0
    verified_purchase: bool = False
    response: str | None = None
    response_date: str | None = None
    created_at: str | None = None
    user: ReviewAuthorOut | None = None


class SimilarBusinessOut(ApiModel):
    id: str
    name: str
    slug: str
    description: str | None = None
    city: str | None = None
    state: str | None = None
    rating: float = 0
    review_count: int = 0
    price_range: str | None = None
    primary_photo: str | None = None


class PermissionsOut(ApiModel):
    can_edit: bool
    can_delete: bool
    can_manage_photos: bool
    can_manage_hours: bool
    can_respond_to_reviews: bool
    can_view_analytics: bool


class BusinessOut(ApiModel):
    """Client-facing business shape; include fields are present only when requested."""

    id: str
    name: str
    slug: str
    description: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone: str | None = None
    website: str | None = None
    email: str | None = None
    social_media: dict = {}
    rating: float = 0
    review_count: int = 0
    price_range: str | None = None
    features: list[str] = []
    verified: bool = False
    featured: bool = False
    coordinates: CoordinatesOut
    status: str
    created_at: str | None = None
    updated_at: str | None = None
    distance_km: float | None = None

    photos: list[PhotoOut] | None = None
    categories: list[CategoryOut] | None = None
    hours: list[HoursOut] | None = None
    metrics: MetricsOut | None = None
    owner: OwnerOut | None = None
    reviews: list[ReviewOut] | None = None
    similar_businesses: list[SimilarBusinessOut] | None = None
    permissions: PermissionsOut | None = None


class PaginationMeta(ApiModel):
    page: int
    limit: int
    total: int
    pages: int
    returned: int
    has_next: bool
    has_prev: bool


class PerformanceMeta(ApiModel):
    query_time: float
    cache_hit: bool = False


# ============== Simple Search (/api/business/search, /api/biz) ==============

class SimpleBusinessOut(ApiModel):
    """Flat business card used by the simple search and map endpoints."""

    id: str
    name: str
    slug: str
    description: str | None = None
    coordinates: CoordinatesOut
    address: str | None = None
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    website: str | None = None
    rating: float = 0
    review_count: int = 0
    categories: list[str] = []
    price_range: str | None = None
    featured: bool = False
    verified: bool = False
    photos: list[str] = []


SimpleSortField = Literal["relevance", "rating", "name", "distance"]


class SimpleSearchParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    query: str = Field(default="", max_length=200)
    location: str = Field(default="", max_length=200)
    category: str = Field(default="", max_length=140)
    featured: bool | None = None
    verified: bool | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    price_range: PriceRange | None = Field(default=None, alias="priceRange")
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    sort_field: SimpleSortField = "relevance"
    sort_order: Literal["asc", "desc"] = "desc"
    mock: bool = False

    def has_filters(self) -> bool:
        return any(
            (
                self.query.strip(),
                self.location.strip(),
                self.category.strip(),
                self.featured is not None,
                self.verified is not None,
                bool(self.rating),
                self.price_range is not None,
            )
        )


class SimpleSearchFilters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    featured: bool | None = None
    verified: bool | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    price_range: PriceRange | None = Field(default=None, alias="priceRange")


class SimplePagination(BaseModel):
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class SimpleSort(BaseModel):
    field: SimpleSortField = "relevance"
    order: Literal["asc", "desc"] = "desc"


class SimpleSearchBody(BaseModel):
    """JSON body accepted by POST /api/business/search."""

    model_config = ConfigDict(extra="ignore")

    query: str = ""
    location: str = ""
    category: str = ""
    filters: SimpleSearchFilters = Field(default_factory=SimpleSearchFilters)
    pagination: SimplePagination = Field(default_factory=SimplePagination)
    sort: SimpleSort = Field(default_factory=SimpleSort)
    mock: bool = False

    def to_params(self) -> SimpleSearchParams:
        return SimpleSearchParams(
            query=self.query,
            location=self.location,
            category=self.category,
            featured=self.filters.featured,
            verified=self.filters.verified,
            rating=self.filters.rating,
            price_range=self.filters.price_range,
            limit=self.pagination.limit,
            offset=self.pagination.offset,
            sort_field=self.sort.field,
            sort_order=self.sort.order,
            mock=self.mock,
        )


class MapSearchParams(BaseModel):
    model_config = ConfigDict(extra="ignore")

    north: float = Field(ge=-90, le=90)
    south: float = Field(ge=-90, le=90)
    east: float = Field(ge=-180, le=180)
    west: float = Field(ge=-180, le=180)
    zoom: int = Field(default=10, ge=0, le=22)
    query: str = Field(default="", max_length=200)
    limit: int = Field(default=100, ge=1, le=200)

    @model_validator(mode="after")
    def check_south_below_north(self) -> "MapSearchParams":
        if self.south > self.north:
            raise ValueError("south must not be greater than north")
        return self

    @property
    def effective_limit(self) -> int:
        """Denser zoom levels allow more pins."""
        cap = 200 if self.zoom > 15 else 100 if self.zoom > 12 else 50
        return min(self.limit, cap)

    def bounds(self) -> dict:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}
