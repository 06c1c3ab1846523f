from thorbis.schemas.auth import Viewer
from thorbis.schemas.business import (
    BusinessCreate,
    BusinessDetailParams,
    BusinessOut,
    BusinessSearchParams,
    BusinessUpdate,
)

__all__ = [
    "Viewer",
    "BusinessCreate",
    "BusinessDetailParams",
    "BusinessOut",
    "BusinessSearchParams",
    "BusinessUpdate",
]
