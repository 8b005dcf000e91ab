import re
from datetime import datetime

from pydantic import Field, field_validator

from app.models.user import Role
from app.schemas.common import CamelModel, normalise_email

_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
    (re.compile(r"[^A-Za-z0-9]"), "a special character"),
)


def validate_password_strength(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(value)]
    if missing:
        raise ValueError("Password must contain " + ", ".join(missing))
    return value


class LoginRequest(CamelModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def _normalise_email(cls, value: str) -> str:
        return normalise_email(value)


class AuthUser(CamelModel):
    id: str
    email: str
    role: Role


class LoginResponse(CamelModel):
    access_token: str
    user: AuthUser


class RefreshResponse(CamelModel):
    access_token: str


class MeResponse(CamelModel):
    id: str
    email: str
    role: Role
    active: bool
    created_at: datetime
    updated_at: datetime


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(max_length=128)

    @field_validator("new_password")
    @classmethod
    def _strong_password(cls, value: str) -> str:
        return validate_password_strength(value)
