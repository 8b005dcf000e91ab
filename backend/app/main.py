"""Application entry point for the portfolio API service."""

from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.routes.auth import router as auth_router
from app.api.routes.comments import router as comments_router
from app.api.routes.projects import router as projects_router
from app.api.routes.uploads import router as uploads_router
from app.api.routes.users import router as users_router
from app.core.cache import close_redis_client, get_redis_client
from app.core.config import settings
from app.core.db import get_session
from app.core.errors import setup_exception_handlers
from app.core.logging import setup_logging
from app.core.middleware import BodySizeLimitMiddleware, RequestContextLogMiddleware
from app.core.observability import init_sentry
from app.core.rate_limit import init_rate_limiter

setup_logging("DEBUG" if settings.DEBUG else "INFO")
init_sentry()

app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)

setup_exception_handlers(app)
init_rate_limiter(app)

app.add_middleware(RequestContextLogMiddleware)


def _cors_origins() -> list[str]:
    if settings.ENV == "prod":
        if not settings.CORS_ALLOWED_ORIGINS:
            raise RuntimeError("CORS_ALLOWED_ORIGINS must be configured for prod")
        return settings.CORS_ALLOWED_ORIGINS
    return settings.CORS_ALLOWED_ORIGINS or ["http://localhost:3001"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=[
        "X-Request-ID",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
        "Retry-After",
    ],
)

app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
async def startup_event():
    """Connect to Redis when enabled; caching falls back to memory otherwise."""
    if settings.REDIS_ENABLED:
        await get_redis_client()
    logger.bind(env=settings.ENV).info("application_started")


@app.on_event("shutdown")
async def shutdown_event():
    """Close Redis connection on shutdown."""
    await close_redis_client()


@app.get("/api/health", tags=["system"], summary="Liveness probe")
def health() -> dict[str, str]:
    """Simple liveness probe that load balancers and monitors can call."""

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.APP_NAME,
    }


@app.get("/api/readyz", tags=["system"], summary="Readiness probe")
async def readyz(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.bind(error=str(exc)).error("readiness_check_failed")
        raise HTTPException(status_code=503, detail="Database not reachable")
    return {"ready": True}


app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(projects_router, prefix="/api")
app.include_router(comments_router, prefix="/api")
app.include_router(uploads_router, prefix="/api")
