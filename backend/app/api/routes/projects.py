from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import cache
from app.core.config import settings
from app.core.db import get_session
from app.core.deps import require_roles
from app.models.project import Project
from app.models.user import Role, User
from app.schemas.project import ProjectCreate, ProjectOut, ProjectUpdate
from app.services import projects as project_service

router = APIRouter(prefix="/projects", tags=["projects"])


def _serialize(project: Project) -> dict[str, Any]:
    return ProjectOut.model_validate(project).model_dump(mode="json", by_alias=True)


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: ProjectCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_roles(Role.OWNER)),
):
    project = await project_service.create_project(
        session,
        payload,
        user.id,
        remote_addr=(request.client.host if request.client else None),
    )
    await cache.invalidate_project_caches(user_id=user.id)
    return _serialize(project)


@router.get("", response_model=List[ProjectOut])
async def list_projects(session: AsyncSession = Depends(get_session)):
    cached = await cache.get_cache(cache.PROJECTS_KEY)
    if cached is not None:
        return cached
    items = [_serialize(p) for p in await project_service.list_projects(session)]
    await cache.set_cache(cache.PROJECTS_KEY, items, settings.CACHE_TTL_PROJECT_LIST)
    return items


@router.get("/slug/{slug}", response_model=ProjectOut)
async def get_project_by_slug(slug: str, session: AsyncSession = Depends(get_session)):
    key = cache.project_slug_key(slug)
    cached = await cache.get_cache(key)
    if cached is not None:
        return cached
    project = await project_service.get_project_by_slug(session, slug)
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project with slug '{slug}' not found",
        )
    data = _serialize(project)
    await cache.set_cache(key, data, settings.CACHE_TTL_PROJECT)
    return data


@router.get("/user/{user_id}", response_model=List[ProjectOut])
async def list_user_projects(user_id: str, session: AsyncSession = Depends(get_session)):
    key = cache.user_projects_key(user_id)
    cached = await cache.get_cache(key)
    if cached is not None:
        return cached
    items = [
        _serialize(p) for p in await project_service.list_projects(session, user_id=user_id)
    ]
    await cache.set_cache(key, items, settings.CACHE_TTL_PROJECT_LIST)
    return items


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, session: AsyncSession = Depends(get_session)):
    key = cache.project_key(project_id)
    cached = await cache.get_cache(key)
    if cached is not None:
        return cached
    data = _serialize(await project_service.get_project(session, project_id))
    await cache.set_cache(key, data, settings.CACHE_TTL_PROJECT)
    return data


@router.put("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: str,
    payload: ProjectUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_roles(Role.OWNER)),
):
    project, previous_slug = await project_service.update_project_details(
        session,
        project_id,
        payload,
        user.id,
        remote_addr=(request.client.host if request.client else None),
    )
    await cache.invalidate_project_caches(
        project_id, user_id=project.user_id, slugs=(previous_slug, project.slug)
    )
    return _serialize(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(require_roles(Role.OWNER)),
):
    project = await project_service.delete_project(
        session,
        project_id,
        user.id,
        remote_addr=(request.client.host if request.client else None),
    )
    await cache.invalidate_project_caches(
        project_id, user_id=project.user_id, slugs=(project.slug,)
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _invalidate_after_view(session: AsyncSession, project_id: str) -> None:
    project = await project_service.get_project(session, project_id)
    await cache.invalidate_project_caches(
        project_id, user_id=project.user_id, slugs=(project.slug,)
    )


@router.post("/{project_id}/view-pessimistic", status_code=status.HTTP_204_NO_CONTENT)
async def increment_view_pessimistic(
    project_id: str, session: AsyncSession = Depends(get_session)
):
    await project_service.increment_view_pessimistic(session, project_id)
    await _invalidate_after_view(session, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{project_id}/view-optimistic", status_code=status.HTTP_204_NO_CONTENT)
async def increment_view_optimistic(
    project_id: str, session: AsyncSession = Depends(get_session)
):
    await project_service.increment_view_optimistic(session, project_id)
    await _invalidate_after_view(session, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
