# thorbis/models/__init__.py

from thorbis.core.database import Base

# Core models
from thorbis.models.business import Business, BusinessFeature, business_categories
from thorbis.models.category import Category

# Child tables and users
from thorbis.models.other_models import (
    User,
    BusinessHours,
    BusinessPhoto,
    BusinessMetrics,
    Review,
)

__all__ = [
    "Base",
    "Business",
    "BusinessFeature",
    "business_categories",
    "Category",
    "User",
    "BusinessHours",
    "BusinessPhoto",
    "BusinessMetrics",
    "Review",
]
