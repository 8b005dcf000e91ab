"""Shared helpers for database error handling."""

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError

# MySQL 3572: statement aborted because NOWAIT could not lock a row
MYSQL_NOWAIT_CONFLICT = 3572
# PostgreSQL lock_not_available
PG_LOCK_NOT_AVAILABLE = "55P03"


def extract_error_code(exc: DBAPIError) -> tuple[int | None, str | None]:
    """Return the driver error number and SQLSTATE carried by ``exc``."""

    orig = getattr(exc, "orig", None)
    if not orig:
        return None, None
    code = None
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if getattr(orig, "args", None):
        try:
            code = int(orig.args[0])
        except (TypeError, ValueError):
            code = None
    return code, sqlstate


def is_lock_conflict(exc: DBAPIError) -> bool:
    code, sqlstate = extract_error_code(exc)
    if code == MYSQL_NOWAIT_CONFLICT or sqlstate == PG_LOCK_NOT_AVAILABLE:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return "could not obtain lock" in message or "could not acquire" in message


def raise_on_lock_conflict(exc: DBAPIError) -> None:
    """Translate lock-nowait conflicts into 409, re-raise anything else."""

    if is_lock_conflict(exc):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Resource is locked by another request. Please retry shortly.",
        ) from exc
    raise exc
