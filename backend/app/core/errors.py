"""Domain errors and the application-wide exception handlers."""

from __future__ import annotations

import traceback
from datetime import datetime, timezone
from typing import Any, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings


class AppError(Exception):
    """Base class for errors that map onto a fixed HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class ProjectNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project with ID {project_id} not found")


class VersionConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(
            detail
            or "Record has been updated by someone else. Please reload and try again."
        )


class SlugConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, slug: str) -> None:
        self.slug = slug
        super().__init__(f"Project with slug '{slug}' already exists")


class UpdateProjectDetailsError(AppError):
    """Unexpected persistence failure while updating a project."""

    def __init__(self, project_id: str, cause: BaseException) -> None:
        self.project_id = project_id
        self.cause = cause
        super().__init__(f"Failed to update project {project_id}")


def _body(
    request: Request, status_code: int, detail: Any, exc: Optional[BaseException] = None
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "detail": detail,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }
    if exc is not None and status_code >= 500 and settings.ENV != "prod":
        body["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return body


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code >= 500:
        sentry_sdk.capture_exception(exc)
    logger.bind(
        method=request.method,
        path=request.url.path,
        status=exc.status_code,
        error=str(exc.detail),
    ).warning("http_error")
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(request, exc.status_code, exc.detail, exc),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    logger.bind(method=request.method, path=request.url.path, errors=errors).info(
        "request_validation_failed"
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body(request, status.HTTP_400_BAD_REQUEST, errors),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.bind(
        method=request.method,
        path=request.url.path,
        status=exc.status_code,
        error_type=type(exc).__name__,
    )
    if exc.status_code >= 500:
        cause = getattr(exc, "cause", None)
        log.opt(exception=exc).error("request_failed", cause=repr(cause))
        sentry_sdk.capture_exception(exc)
    else:
        log.info("request_rejected")
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(request, exc.status_code, exc.detail, exc),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort for anything the routes did not translate."""

    logger.bind(
        method=request.method,
        path=request.url.path,
        query_params=dict(request.query_params),
        client=request.client.host if request.client else "unknown",
        error_type=type(exc).__name__,
    ).opt(exception=exc).error("unhandled_exception")
    sentry_sdk.capture_exception(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", exc
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    logger.debug("exception_handlers_registered")
