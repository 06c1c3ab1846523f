from uuid import UUID

from pydantic import BaseModel

from thorbis.models.enums import UserRole


# ============== Caller Identity ==============

class Viewer(BaseModel):
    """Authenticated caller, decoded from bearer token claims."""
    id: UUID
    role: UserRole = UserRole.USER
    email: str | None = None
    email_verified: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
