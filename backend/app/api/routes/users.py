from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.db import get_session
from app.core.deps import get_current_user, require_roles
from app.core.security import get_password_hash_async
from app.models.user import Role, User
from app.schemas.user import UserCreate, UserOut, UserStatusUpdate

router = APIRouter(prefix="/users", tags=["users"])

_DUPLICATE_EMAIL = "User with this email already exists"


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    owner: User = Depends(require_roles(Role.OWNER)),
):
    exists = await session.scalar(select(User.id).where(User.email == payload.email))
    if exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_DUPLICATE_EMAIL)

    obj = User(
        email=payload.email,
        password_hash=await get_password_hash_async(payload.password),
        role=payload.role,
    )
    session.add(obj)
    try:
        await session.flush()
        await log_audit(
            session,
            owner.id,
            "user",
            obj.id,
            "CREATE",
            details={"email": payload.email, "role": payload.role.value},
            remote_addr=(request.client.host if request.client else None),
        )
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_DUPLICATE_EMAIL)
    logger.bind(new_user_id=obj.id, role=payload.role.value).info("user_created")
    return obj


@router.get("", response_model=List[UserOut])
async def list_users(
    session: AsyncSession = Depends(get_session),
    _: User = Depends(require_roles(Role.OWNER)),
):
    result = await session.execute(select(User).order_by(User.created_at, User.email))
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: str,
    session: AsyncSession = Depends(get_session),
    current: User = Depends(get_current_user),
):
    if current.role != Role.OWNER and current.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
        )
    obj = await session.scalar(select(User).where(User.id == user_id))
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return obj


@router.patch("/{user_id}/status", response_model=UserOut)
async def set_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    owner: User = Depends(require_roles(Role.OWNER)),
):
    if user_id == owner.id and not payload.active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account",
        )
    values: dict = {"active": payload.active, "updated_at": datetime.now()}
    if not payload.active:
        values["refresh_token_hash"] = None
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    await log_audit(
        session,
        owner.id,
        "user",
        user_id,
        "STATUS",
        details={"active": payload.active},
        remote_addr=(request.client.host if request.client else None),
    )
    await session.commit()
    return await session.scalar(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
