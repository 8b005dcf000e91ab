"""Project persistence: CRUD, transactional detail updates and view counters.

Two view counter strategies are offered. ``increment_view_pessimistic`` holds
a row lock on the stats row for the whole read-modify-write.
``increment_view_optimistic`` reads without locking and writes only if the
stats version is unchanged, retrying with backoff on conflict.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Optional, Sequence

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy import delete, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.audit import log_audit
from app.core.config import settings
from app.core.db import transaction
from app.core.db_errors import is_lock_conflict, raise_on_lock_conflict
from app.core.db_retry import with_db_retry
from app.core.errors import (
    AppError,
    ProjectNotFoundError,
    SlugConflictError,
    UpdateProjectDetailsError,
    VersionConflictError,
)
from app.core.optimistic_lock import ensure_expected_version
from app.models.comment import Comment
from app.models.project import Project, ProjectStats
from app.schemas.project import ProjectCreate, ProjectUpdate
from app.utils.text import slugify


def _project_query():
    return (
        select(Project)
        .options(selectinload(Project.stats))
        .execution_options(populate_existing=True)
    )


async def get_project(session: AsyncSession, project_id: str) -> Project:
    project = await session.scalar(_project_query().where(Project.id == project_id))
    if project is None:
        raise ProjectNotFoundError(project_id)
    return project


async def get_project_by_slug(session: AsyncSession, slug: str) -> Optional[Project]:
    return await session.scalar(_project_query().where(Project.slug == slug))


async def list_projects(
    session: AsyncSession, user_id: Optional[str] = None
) -> Sequence[Project]:
    stmt = _project_query().order_by(Project.created_at.desc(), Project.id)
    if user_id is not None:
        stmt = stmt.where(Project.user_id == user_id)
    return (await session.scalars(stmt)).all()


async def _ensure_slug_free(
    session: AsyncSession, slug: str, exclude_id: Optional[str] = None
) -> None:
    stmt = select(Project.id).where(Project.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(Project.id != exclude_id)
    if await session.scalar(stmt):
        raise SlugConflictError(slug)


async def create_project(
    session: AsyncSession,
    payload: ProjectCreate,
    user_id: str,
    remote_addr: Optional[str] = None,
) -> Project:
    slug = payload.slug or slugify(payload.title)
    if not slug:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot derive a slug from the title; provide one explicitly",
        )
    data = payload.model_dump(exclude={"slug"})
    try:
        async with transaction(session):
            await _ensure_slug_free(session, slug)
            project = Project(**data, slug=slug, user_id=user_id)
            session.add(project)
            await session.flush()
            await log_audit(
                session,
                user_id,
                "project",
                project.id,
                "CREATE",
                details={"slug": slug, "title": payload.title},
                remote_addr=remote_addr,
            )
    except IntegrityError as exc:
        raise SlugConflictError(slug) from exc

    logger.bind(project_id=project.id, slug=slug).info("project_created")
    return await get_project(session, project.id)


async def update_project_details(
    session: AsyncSession,
    project_id: str,
    payload: ProjectUpdate,
    user_id: Optional[str],
    remote_addr: Optional[str] = None,
) -> tuple[Project, str]:
    """Update project columns and stats in one transaction with an audit row.

    Returns the refreshed project and the slug it had before the update.
    """

    fields = payload.project_fields()
    new_slug = fields.get("slug")
    try:
        async with transaction(session):
            project = await session.scalar(
                select(Project)
                .where(Project.id == project_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                .execution_options(populate_existing=True)
            )
            if project is None:
                raise ProjectNotFoundError(project_id)

            ensure_expected_version(project.version, payload.expected_version)

            previous_slug = project.slug
            if new_slug and new_slug != previous_slug:
                await _ensure_slug_free(session, new_slug, exclude_id=project_id)

            for name, value in fields.items():
                setattr(project, name, value)
            project.version += 1
            project.updated_at = datetime.now()

            stats_data = (
                payload.stats.model_dump(exclude_none=True) if payload.stats else {}
            )
            if stats_data:
                stats = await session.scalar(
                    select(ProjectStats)
                    .where(ProjectStats.project_id == project_id)
                    .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                    .execution_options(populate_existing=True)
                )
                if stats is None:
                    session.add(
                        ProjectStats(
                            project_id=project_id,
                            views=stats_data.get("views", 0),
                            likes=stats_data.get("likes", 0),
                        )
                    )
                else:
                    for name, value in stats_data.items():
                        setattr(stats, name, value)
                    stats.version += 1
                    stats.updated_at = datetime.now()

            await log_audit(
                session,
                user_id,
                "project",
                project_id,
                "update_project_details",
                details={
                    "id": project_id,
                    **payload.model_dump(mode="json", by_alias=True, exclude_unset=True),
                },
                remote_addr=remote_addr,
            )
    except AppError:
        raise
    except IntegrityError as exc:
        if new_slug:
            raise SlugConflictError(new_slug) from exc
        raise UpdateProjectDetailsError(project_id, exc) from exc
    except DBAPIError as exc:
        if is_lock_conflict(exc):
            raise_on_lock_conflict(exc)
        raise UpdateProjectDetailsError(project_id, exc) from exc
    except SQLAlchemyError as exc:
        raise UpdateProjectDetailsError(project_id, exc) from exc

    logger.bind(project_id=project_id, fields=sorted(fields)).info("project_updated")
    return await get_project(session, project_id), previous_slug


async def delete_project(
    session: AsyncSession,
    project_id: str,
    user_id: Optional[str],
    remote_addr: Optional[str] = None,
) -> Project:
    """Delete a project together with its comments and stats."""

    async with transaction(session):
        project = await session.scalar(
            select(Project)
            .where(Project.id == project_id)
            .execution_options(populate_existing=True)
        )
        if project is None:
            raise ProjectNotFoundError(project_id)
        await session.execute(delete(Comment).where(Comment.project_id == project_id))
        await session.execute(
            delete(ProjectStats).where(ProjectStats.project_id == project_id)
        )
        await session.execute(delete(Project).where(Project.id == project_id))
        await log_audit(
            session,
            user_id,
            "project",
            project_id,
            "DELETE",
            details={"slug": project.slug},
            remote_addr=remote_addr,
        )
    logger.bind(project_id=project_id).info("project_deleted")
    return project


async def increment_view_pessimistic(session: AsyncSession, project_id: str) -> None:
    """Increment views while holding ``SELECT ... FOR UPDATE`` on the stats row."""

    async def _operation() -> None:
        async with transaction(session):
            stats = await session.scalar(
                select(ProjectStats)
                .where(ProjectStats.project_id == project_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                .execution_options(populate_existing=True)
            )
            if stats is None:
                exists = await session.scalar(
                    select(Project.id).where(Project.id == project_id)
                )
                if exists is None:
                    raise ProjectNotFoundError(project_id)
                session.add(ProjectStats(project_id=project_id, views=1, likes=0))
                return
            stats.views += 1
            stats.version += 1
            stats.updated_at = datetime.now()

    try:
        try:
            await with_db_retry(session, _operation)
        except IntegrityError:
            # Lost the race to create the stats row; it exists now, so lock and bump it.
            await with_db_retry(session, _operation)
    except DBAPIError as exc:
        raise_on_lock_conflict(exc)


async def write_views_if_version(
    session: AsyncSession, project_id: str, expected_version: int, views: int
) -> bool:
    """Compare-and-swap the stats row; False when another writer got there first."""

    result = await session.execute(
        update(ProjectStats)
        .where(
            ProjectStats.project_id == project_id,
            ProjectStats.version == expected_version,
        )
        .values(views=views, version=expected_version + 1, updated_at=datetime.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _increment_with_version_check(session: AsyncSession, project_id: str) -> None:
    try:
        async with transaction(session):
            exists = await session.scalar(select(Project.id).where(Project.id == project_id))
            if exists is None:
                raise ProjectNotFoundError(project_id)

            row = (
                await session.execute(
                    select(ProjectStats.views, ProjectStats.version).where(
                        ProjectStats.project_id == project_id
                    )
                )
            ).one_or_none()
            if row is None:
                session.add(ProjectStats(project_id=project_id, views=1, likes=0))
                await session.flush()
                return

            if not await write_views_if_version(
                session, project_id, row.version, row.views + 1
            ):
                raise VersionConflictError(
                    f"Project {project_id} stats changed during the update"
                )
    except IntegrityError as exc:
        # A concurrent request created the stats row first.
        raise VersionConflictError(
            f"Project {project_id} stats were created concurrently"
        ) from exc


async def increment_view_optimistic(session: AsyncSession, project_id: str) -> None:
    """Increment views with a version check, retrying conflicts with backoff."""

    max_retries = settings.VIEW_OPTIMISTIC_MAX_RETRIES
    backoff_ms = settings.VIEW_OPTIMISTIC_BACKOFF_MS
    for attempt in range(max_retries):
        try:
            await _increment_with_version_check(session, project_id)
            return
        except VersionConflictError as exc:
            logger.bind(
                project_id=project_id,
                attempt=attempt + 1,
                max_attempts=max_retries,
                error=exc.detail,
            ).warning("view_increment_version_conflict")
            if attempt < max_retries - 1 and backoff_ms:
                delay = backoff_ms[min(attempt, len(backoff_ms) - 1)]
                await asyncio.sleep(delay / 1000)

    raise VersionConflictError(
        f"Failed to increment views after {max_retries} attempts due to version conflicts"
    )
