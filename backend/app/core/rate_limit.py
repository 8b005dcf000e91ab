"""Rate limiting utilities using SlowAPI."""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from app.core.config import settings

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def client_ip(request: Request) -> str:
    """Resolve the caller address, honouring proxy headers."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request) or "unknown"


# swallow_errors keeps requests flowing when the limiter storage is down
limiter = Limiter(
    key_func=client_ip,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    headers_enabled=True,
    swallow_errors=True,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def init_rate_limiter(app: FastAPI, limiter_: Optional[Limiter] = None) -> None:
    """Attach the rate limiter and exception handler to the FastAPI app."""

    active = limiter_ or limiter
    app.state.limiter = active
    app.add_middleware(SlowAPIMiddleware)

    # SlowAPIMiddleware calls the handler synchronously
    def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        logger.bind(
            client=client_ip(request), path=request.url.path, limit=str(exc.detail)
        ).warning("rate_limit_exceeded")
        response = JSONResponse(
            status_code=429,
            content={"statusCode": 429, "detail": RATE_LIMIT_MESSAGE},
        )
        view_limit = getattr(request.state, "view_rate_limit", None)
        if view_limit is None:
            return response
        return request.app.state.limiter._inject_headers(response, view_limit)

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
