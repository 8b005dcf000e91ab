from datetime import datetime

from pydantic import Field, field_validator

from app.schemas.common import CamelModel


class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=500)
    project_id: str = Field(..., min_length=1, max_length=36)

    @field_validator("content", mode="before")
    @classmethod
    def _strip_content(cls, value):
        return value.strip() if isinstance(value, str) else value


class CommentUpdate(CamelModel):
    content: str = Field(..., min_length=1, max_length=500)

    @field_validator("content", mode="before")
    @classmethod
    def _strip_content(cls, value):
        return value.strip() if isinstance(value, str) else value


class CommentOut(CamelModel):
    id: str
    content: str
    user_id: str
    project_id: str
    created_at: datetime
    updated_at: datetime
