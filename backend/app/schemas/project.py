"""Pydantic schemas for project operations."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import AnyHttpUrl, Field, TypeAdapter, ValidationError, field_validator

from app.schemas.common import CamelModel

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
_REQUIRED_COLUMNS = {"title", "slug", "short_description", "content", "tech_stack"}
_HTTP_URL = TypeAdapter(AnyHttpUrl)


def _check_url(value: Optional[str], label: str) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    try:
        url = _HTTP_URL.validate_python(trimmed)
    except ValidationError:
        raise ValueError(f"{label} must be a valid URL") from None
    return str(url)


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_tech_stack(value: List[str]) -> List[str]:
    cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if not cleaned:
        raise ValueError("techStack must contain at least one entry")
    return cleaned


class ProjectCreate(CamelModel):
    title: str = Field(..., min_length=3, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=120, pattern=SLUG_PATTERN)
    short_description: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    tech_stack: List[str] = Field(..., min_length=1)
    thumbnail_url: Optional[str] = Field(default=None, max_length=500)
    github_url: Optional[str] = Field(default=None, max_length=500)
    demo_url: Optional[str] = Field(default=None, max_length=500)
    status: Optional[str] = Field(default=None, max_length=32)

    @field_validator("title", "short_description", "content", mode="before")
    @classmethod
    def _strip_required(cls, value):
        return _strip(value)

    @field_validator("tech_stack")
    @classmethod
    def _tech_stack(cls, value: List[str]) -> List[str]:
        return _check_tech_stack(value)

    @field_validator("github_url")
    @classmethod
    def _github_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value, "githubUrl")

    @field_validator("demo_url")
    @classmethod
    def _demo_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value, "demoUrl")


class StatsUpdate(CamelModel):
    views: Optional[int] = Field(default=None, ge=0)
    likes: Optional[int] = Field(default=None, ge=0)


class ProjectUpdate(CamelModel):
    """Partial update; ``stats`` is written in the same transaction."""

    title: Optional[str] = Field(default=None, min_length=3, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=120, pattern=SLUG_PATTERN)
    short_description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    content: Optional[str] = Field(default=None, min_length=1)
    tech_stack: Optional[List[str]] = None
    thumbnail_url: Optional[str] = Field(default=None, max_length=500)
    github_url: Optional[str] = Field(default=None, max_length=500)
    demo_url: Optional[str] = Field(default=None, max_length=500)
    status: Optional[str] = Field(default=None, max_length=32)
    stats: Optional[StatsUpdate] = None
    expected_version: Optional[int] = Field(default=None, ge=1)

    @field_validator("title", "short_description", "content", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return _strip(value)

    @field_validator("tech_stack")
    @classmethod
    def _tech_stack(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return None if value is None else _check_tech_stack(value)

    @field_validator("github_url")
    @classmethod
    def _github_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value, "githubUrl")

    @field_validator("demo_url")
    @classmethod
    def _demo_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value, "demoUrl")

    def project_fields(self) -> dict:
        """Column updates explicitly provided by the caller.

        Explicit nulls clear the optional columns and are ignored for the
        required ones.
        """

        data = self.model_dump(
            exclude_unset=True, exclude={"stats", "expected_version"}, by_alias=False
        )
        return {
            name: value
            for name, value in data.items()
            if value is not None or name not in _REQUIRED_COLUMNS
        }


class ProjectOut(CamelModel):
    id: str
    title: str
    slug: str
    short_description: str
    content: str
    tech_stack: List[str]
    user_id: str
    thumbnail_url: Optional[str] = None
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    status: Optional[str] = None
    version: int
    views: int = 0
    created_at: datetime
    updated_at: datetime
