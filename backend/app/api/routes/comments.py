from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.db import get_session
from app.core.deps import get_current_user
from app.core.errors import ProjectNotFoundError
from app.models.comment import Comment
from app.models.project import Project
from app.models.user import Role, User
from app.schemas.comment import CommentCreate, CommentOut, CommentUpdate

router = APIRouter(prefix="/comments", tags=["comments"])


async def _get_comment(session: AsyncSession, comment_id: str) -> Comment:
    obj = await session.scalar(select(Comment).where(Comment.id == comment_id))
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return obj


@router.post("", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def create_comment(
    payload: CommentCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    exists = await session.scalar(select(Project.id).where(Project.id == payload.project_id))
    if not exists:
        raise ProjectNotFoundError(payload.project_id)

    obj = Comment(content=payload.content, project_id=payload.project_id, user_id=user.id)
    session.add(obj)
    await session.flush()
    await log_audit(
        session,
        user.id,
        "comment",
        obj.id,
        "CREATE",
        details={"project_id": payload.project_id},
        remote_addr=(request.client.host if request.client else None),
    )
    await session.commit()
    return obj


@router.get("/project/{project_id}", response_model=List[CommentOut])
async def list_project_comments(
    project_id: str, session: AsyncSession = Depends(get_session)
):
    result = await session.execute(
        select(Comment)
        .where(Comment.project_id == project_id)
        .order_by(Comment.created_at, Comment.id)
    )
    return result.scalars().all()


@router.put("/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: str,
    payload: CommentUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    obj = await _get_comment(session, comment_id)
    if obj.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only edit your own comments",
        )
    obj.content = payload.content
    obj.updated_at = datetime.now()
    await log_audit(
        session,
        user.id,
        "comment",
        comment_id,
        "UPDATE",
        details=None,
        remote_addr=(request.client.host if request.client else None),
    )
    await session.commit()
    return obj


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    obj = await _get_comment(session, comment_id)
    if obj.user_id != user.id and user.role != Role.OWNER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only delete your own comments",
        )
    await session.delete(obj)
    await log_audit(
        session,
        user.id,
        "comment",
        comment_id,
        "DELETE",
        details={"project_id": obj.project_id},
        remote_addr=(request.client.host if request.client else None),
    )
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
