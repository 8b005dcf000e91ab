from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from app.models.user import Role
from app.schemas.common import CamelModel, normalise_email


class UserCreate(CamelModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.VIEWER

    @field_validator("email", mode="before")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return normalise_email(value)


class UserOut(CamelModel):
    """Public view of a user; credentials and token hashes are never exposed."""

    id: str
    email: str
    role: Role
    active: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None


class UserStatusUpdate(CamelModel):
    active: bool
