"""Shared schema configuration."""

import re

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CamelModel(BaseModel):
    """Base model exposing camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def normalise_email(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("Email must be a string")
    trimmed = value.strip().lower()
    if not EMAIL_RE.match(trimmed):
        raise ValueError("Invalid email format")
    return trimmed


class MessageResponse(BaseModel):
    message: str
