"""Helpers for optimistic concurrency control."""

from __future__ import annotations

from typing import Optional

from app.core.errors import VersionConflictError


def ensure_expected_version(current: int, expected: Optional[int]) -> None:
    """Raise ``VersionConflictError`` if the persisted version moved on.

    ``expected=None`` means the caller did not ask for a check.
    """

    if expected is None or current == expected:
        return
    raise VersionConflictError(
        f"Version mismatch: expected {expected}, found {current}. "
        "Please reload and try again."
    )
