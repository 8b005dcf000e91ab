"""ORM model exports for convenient imports elsewhere in the app."""

from app.models.base import Base
from app.models.audit import AuditLog
from app.models.comment import Comment
from app.models.project import Project, ProjectStats
from app.models.upload import Upload
from app.models.user import Role, User

__all__ = [
    "Base",
    "AuditLog",
    "Comment",
    "Project",
    "ProjectStats",
    "Role",
    "Upload",
    "User",
]
