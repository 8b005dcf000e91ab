"""Audit trail for logins and project, user and upload mutations."""

from __future__ import annotations

import json
from typing import Any, Optional

from loguru import logger
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import SessionLocal
from app.models.audit import AuditLog


async def log_audit(
    session: AsyncSession,
    user_id: Optional[str],
    entity: str,
    entity_id: Optional[str],
    action: str,
    details: Optional[dict[str, Any]] = None,
    remote_addr: Optional[str] = None,
    *,
    independent_txn: bool = False,
) -> None:
    """Record ``action`` on ``entity`` (``project``, ``user``, ``upload``...).

    The row joins the caller's transaction. With ``independent_txn`` it is
    committed on a separate session and survives a rollback of the caller.
    """

    payload = {
        "user_id": user_id,
        "entity": entity,
        "entity_id": entity_id,
        "action": action,
        "details": json.dumps(details, default=str) if details is not None else None,
        "remote_addr": remote_addr,
    }
    if independent_txn:
        async with SessionLocal() as audit_session:
            async with audit_session.begin():
                await audit_session.execute(insert(AuditLog).values(**payload))
    else:
        await session.execute(insert(AuditLog).values(**payload))
    logger.bind(entity=entity, entity_id=entity_id, action=action).debug(
        "audit_recorded"
    )
