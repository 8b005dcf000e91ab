"""Sentry error reporting."""

from __future__ import annotations

from typing import Any, Optional

import sentry_sdk
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings

_IGNORED_STATUS_CODES = {400, 404}
_SCRUBBED_KEYS = {"cookie", "cookies", "authorization", "set-cookie"}


def _before_send(event: dict[str, Any], hint: dict[str, Any]) -> Optional[dict[str, Any]]:
    exc_info = hint.get("exc_info")
    if exc_info:
        exc = exc_info[1]
        status_code = getattr(exc, "status_code", None)
        if isinstance(exc, StarletteHTTPException) and status_code in _IGNORED_STATUS_CODES:
            return None
    request = event.get("request")
    if isinstance(request, dict):
        request.pop("cookies", None)
        headers = request.get("headers")
        if isinstance(headers, dict):
            for key in list(headers):
                if key.lower() in _SCRUBBED_KEYS:
                    headers.pop(key)
    return event


def _before_breadcrumb(
    crumb: dict[str, Any], hint: dict[str, Any]
) -> Optional[dict[str, Any]]:
    data = crumb.get("data")
    if isinstance(data, dict):
        for key in list(data):
            if key.lower() in _SCRUBBED_KEYS:
                data.pop(key)
        headers = data.get("headers")
        if isinstance(headers, dict):
            for key in list(headers):
                if key.lower() in _SCRUBBED_KEYS:
                    headers.pop(key)
    return crumb


def init_sentry() -> bool:
    """Initialise Sentry when a DSN is configured outside local development."""

    if not settings.SENTRY_DSN or settings.ENV == "dev":
        return False
    traces_rate = settings.SENTRY_TRACES_SAMPLE_RATE
    if traces_rate is None:
        traces_rate = 0.1 if settings.ENV == "prod" else 1.0
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        traces_sample_rate=traces_rate,
        profiles_sample_rate=settings.SENTRY_PROFILES_SAMPLE_RATE,
        send_default_pii=False,
        before_send=_before_send,
        before_breadcrumb=_before_breadcrumb,
    )
    logger.bind(environment=settings.ENV).info("sentry_initialized")
    return True


def set_sentry_user(user_id: str, email: Optional[str] = None) -> None:
    sentry_sdk.set_user({"id": user_id, "email": email})
