import uuid
from datetime import datetime
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from thorbis.core.database import Base
from thorbis.models.enums import BusinessStatus
from thorbis.models.utils import utcnow

business_categories = Table(
    "business_categories",
    Base.metadata,
    Column("business_id", Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Uuid, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime(timezone=True), default=utcnow),
)


class Business(Base):
    __tablename__ = "businesses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    slug: Mapped[str] = mapped_column(String(220), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(30), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True, default="US")
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    social_media: Mapped[dict] = mapped_column(JSON, default=dict)

    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    price_range: Mapped[str | None] = mapped_column(String(4), nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)

    status: Mapped[str] = mapped_column(String(20), default=BusinessStatus.PENDING.value, nullable=False, index=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    owner = relationship("User", back_populates="businesses")
    categories = relationship("Category", secondary=business_categories, back_populates="businesses", order_by="Category.name")
    feature_tags = relationship("BusinessFeature", back_populates="business", cascade="all, delete-orphan", order_by="BusinessFeature.tag")
    hours = relationship("BusinessHours", back_populates="business", cascade="all, delete-orphan", order_by="BusinessHours.day_of_week")
    photos = relationship("BusinessPhoto", back_populates="business", cascade="all, delete-orphan", order_by="BusinessPhoto.sort_order")
    metrics = relationship("BusinessMetrics", back_populates="business", uselist=False, cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="business", order_by="Review.created_at.desc()")

    @property
    def features(self) -> list[str]:
        return [f.tag for f in self.feature_tags]


class BusinessFeature(Base):
    """One free-form feature tag per row."""
    __tablename__ = "business_features"
    __table_args__ = (UniqueConstraint("business_id", "tag", name="uq_business_feature_tag"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    tag: Mapped[str] = mapped_column(String(80), nullable=False)

    business = relationship("Business", back_populates="feature_tags")
