import uuid
from datetime import timedelta

import jwt
import pytest

from thorbis.api.deps import create_access_token, decode_viewer
from thorbis.core.config import settings
from thorbis.core.exceptions import UnauthorizedError
from thorbis.models.enums import UserRole


def test_round_trip_claims():
    user_id = uuid.uuid4()
    token, _ = create_access_token(user_id, role=UserRole.ADMIN, email="admin@example.com", email_verified=False)

    viewer = decode_viewer(token)

    assert viewer.id == user_id
    assert viewer.is_admin
    assert viewer.email == "admin@example.com"
    assert viewer.email_verified is False


def test_expired_token():
    token, _ = create_access_token(uuid.uuid4(), expires_in=timedelta(seconds=-1))
    with pytest.raises(UnauthorizedError, match="expired"):
        decode_viewer(token)


def test_wrong_secret():
    token = jwt.encode({"sub": str(uuid.uuid4()), "role": "user"}, "other-secret", algorithm="HS256")
    with pytest.raises(UnauthorizedError):
        decode_viewer(token)


@pytest.mark.parametrize(
    "claims",
    [
        {"sub": "not-a-uuid", "role": "user"},
        {"sub": str(uuid.uuid4()), "role": "superuser"},
    ],
)
def test_malformed_claims(claims):
    token = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(UnauthorizedError):
        decode_viewer(token)


def test_missing_role_defaults_to_user():
    token = jwt.encode({"sub": str(uuid.uuid4())}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    viewer = decode_viewer(token)
    assert viewer.role == UserRole.USER
    assert not viewer.is_admin
