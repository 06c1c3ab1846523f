"""directory schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(120)),
        sa.Column("avatar_url", sa.Text()),
        sa.Column("role", sa.String(40), nullable=False, server_default="user"),
        sa.Column("email_verified", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("slug", sa.String(140), nullable=False, unique=True),
        sa.Column("icon", sa.String(50)),
        sa.Column("color", sa.String(20)),
        sa.Column("description", sa.Text()),
    )

    op.create_table(
        "businesses",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.String(220), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("address", sa.Text()),
        sa.Column("city", sa.String(100)),
        sa.Column("state", sa.String(100)),
        sa.Column("zip_code", sa.String(30)),
        sa.Column("country", sa.String(100)),
        sa.Column("phone", sa.String(40)),
        sa.Column("website", sa.String(255)),
        sa.Column("email", sa.String(255)),
        sa.Column("social_media", sa.JSON()),
        sa.Column("rating", sa.Float(), nullable=False, server_default="0"),
        sa.Column("review_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("price_range", sa.String(4)),
        sa.Column("latitude", sa.Float()),
        sa.Column("longitude", sa.Float()),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_businesses_latitude", "businesses", ["latitude"])
    op.create_index("ix_businesses_longitude", "businesses", ["longitude"])
    op.create_index("ix_businesses_status", "businesses", ["status"])

    op.create_table(
        "business_categories",
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("category_id", sa.Uuid(), sa.ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "business_features",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tag", sa.String(80), nullable=False),
        sa.UniqueConstraint("business_id", "tag", name="uq_business_feature_tag"),
    )
    op.create_index("ix_business_features_business_id", "business_features", ["business_id"])

    op.create_table(
        "business_hours",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("open_time", sa.Time()),
        sa.Column("close_time", sa.Time()),
        sa.Column("is_closed", sa.Boolean(), server_default=sa.false()),
        sa.UniqueConstraint("business_id", "day_of_week", name="uq_business_hours_day"),
    )
    op.create_index("ix_business_hours_business_id", "business_hours", ["business_id"])

    op.create_table(
        "business_photos",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("alt_text", sa.String(200)),
        sa.Column("caption", sa.Text()),
        sa.Column("is_primary", sa.Boolean(), server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_business_photos_business_id", "business_photos", ["business_id"])

    op.create_table(
        "business_metrics",
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("views_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("views_this_week", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("views_this_month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clicks_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("calls_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("directions_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("business_id", sa.Uuid(), sa.ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rating", sa.SmallInteger(), nullable=False),
        sa.Column("title", sa.String(200)),
        sa.Column("text", sa.Text()),
        sa.Column("photos", sa.JSON()),
        sa.Column("helpful_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verified_purchase", sa.Boolean(), server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("response", sa.Text()),
        sa.Column("response_date", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_reviews_business_id", "reviews", ["business_id"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("business_metrics")
    op.drop_table("business_photos")
    op.drop_table("business_hours")
    op.drop_table("business_features")
    op.drop_table("business_categories")
    op.drop_table("businesses")
    op.drop_table("categories")
    op.drop_table("users")
