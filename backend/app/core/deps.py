from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_session
from app.core.logging import user_id_ctx_var
from app.core.observability import set_sentry_user
from app.core.security import decode_token
from app.models.user import Role, User

_READ_METHODS = {"GET", "HEAD", "OPTIONS"}


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(settings.ACCESS_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    return None


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> User:
    token = _extract_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated"
        )
    try:
        payload = decode_token(token, "access")
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token"
        )
    user = (
        await session.execute(select(User).where(User.id == user_id))
    ).scalar_one_or_none()
    if not user or not user.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User inactive or not found",
        )
    request.state.user_id = user.id
    user_id_ctx_var.set(user.id)
    set_sentry_user(user.id, user.email)
    return user


def require_roles(*roles: Role) -> Callable:
    """Dependency factory restricting a route to the given roles.

    Viewers are read-only: even when listed, they may not use a mutating
    HTTP method.
    """

    allowed = set(roles)

    async def _dependency(
        request: Request, user: User = Depends(get_current_user)
    ) -> User:
        if allowed and user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        if user.role == Role.VIEWER and request.method not in _READ_METHODS:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Viewers have read-only access",
            )
        return user

    return _dependency
