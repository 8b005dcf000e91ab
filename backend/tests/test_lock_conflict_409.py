import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.core.db_errors import extract_error_code, is_lock_conflict, raise_on_lock_conflict
from app.core.errors import VersionConflictError
from app.core.optimistic_lock import ensure_expected_version


class DummyOrig(Exception):
    def __init__(self, code, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.args = (code, message)


def test_mysql_nowait_conflict_translates_to_http_409():
    exc = OperationalError("stmt", {}, DummyOrig(3572, "statement aborted"))
    with pytest.raises(HTTPException) as ctx:
        raise_on_lock_conflict(exc)
    assert ctx.value.status_code == 409
    assert "locked" in ctx.value.detail


def test_postgres_lock_not_available_is_conflict():
    exc = OperationalError("stmt", {}, DummyOrig("x", "row is busy", sqlstate="55P03"))
    assert is_lock_conflict(exc)
    assert extract_error_code(exc) == (None, "55P03")


def test_non_lock_error_is_re_raised():
    exc = OperationalError("stmt", {}, DummyOrig(9999, "some other error"))
    with pytest.raises(OperationalError):
        raise_on_lock_conflict(exc)


def test_expected_version_check():
    ensure_expected_version(3, None)
    ensure_expected_version(3, 3)
    with pytest.raises(VersionConflictError) as ctx:
        ensure_expected_version(4, 3)
    assert ctx.value.status_code == 409
    assert "expected 3, found 4" in ctx.value.detail
