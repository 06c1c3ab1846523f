import enum


class BusinessStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    DELETED = "deleted"


class PriceRange(str, enum.Enum):
    INEXPENSIVE = "$"
    MODERATE = "$$"
    PRICEY = "$$$"
    ULTRA = "$$$$"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    BUSINESS_OWNER = "business_owner"
    USER = "user"


class DataSource(str, enum.Enum):
    """Provenance of a read response."""
    DATABASE = "database"
    FALLBACK = "fallback"
    MOCK = "mock"
    EMERGENCY_FALLBACK = "emergency_fallback"
