"""Application logging configuration helpers."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from sys import stdout
from typing import Any

from loguru import logger

from app.core.config import settings

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")
user_id_ctx_var: ContextVar[str] = ContextVar("user_id", default="-")


def _patch_record(record: dict[str, Any]) -> None:
    record["extra"].setdefault("request_id", request_id_ctx_var.get())
    record["extra"].setdefault("user_id", user_id_ctx_var.get())
    record["extra"].setdefault("service", settings.APP_NAME)
    record["extra"].setdefault("env", settings.ENV)


def setup_logging(level: str = "INFO") -> None:
    """Configure the standard logging module and Loguru sinks."""

    logging.basicConfig(level=logging.INFO)
    logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logger.remove()
    logger.configure(patcher=_patch_record)
    logger.add(
        stdout,
        level=level,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        serialize=True,
    )
