import uuid
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from thorbis.core.config import settings
from thorbis.core.exceptions import ForbiddenError, UnauthorizedError
from thorbis.models.enums import UserRole
from thorbis.schemas.auth import Viewer

security = HTTPBearer(auto_error=False)


# ============== Helper Functions ==============

def create_access_token(
    user_id: uuid.UUID | str,
    role: UserRole | str = UserRole.USER,
    email: str | None = None,
    email_verified: bool = True,
    expires_in: timedelta | None = None,
) -> tuple[str, datetime]:
    """Create a JWT access token carrying the caller identity claims."""
    expires_at = datetime.now(timezone.utc) + (expires_in or timedelta(hours=settings.JWT_EXPIRATION_HOURS))
    payload = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "email": email,
        "email_verified": email_verified,
        "exp": expires_at,
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def decode_viewer(token: str) -> Viewer:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token")

    subject = payload.get("sub")
    try:
        user_id = uuid.UUID(str(subject))
        role = UserRole(payload.get("role") or UserRole.USER.value)
    except ValueError:
        raise UnauthorizedError("Invalid token")

    return Viewer(
        id=user_id,
        role=role,
        email=payload.get("email"),
        email_verified=bool(payload.get("email_verified")),
    )


# ============== Dependencies ==============

async def get_optional_viewer(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Viewer | None:
    """Anonymous callers get None; a malformed or expired token is still rejected."""
    if credentials is None:
        return None
    return decode_viewer(credentials.credentials)


async def get_current_viewer(
    viewer: Viewer | None = Depends(get_optional_viewer),
) -> Viewer:
    if viewer is None:
        raise UnauthorizedError("Authentication required")
    return viewer


async def require_verified_email(
    viewer: Viewer = Depends(get_current_viewer),
) -> Viewer:
    if not viewer.email_verified:
        raise ForbiddenError("Email verification required", code="EMAIL_NOT_VERIFIED")
    return viewer
