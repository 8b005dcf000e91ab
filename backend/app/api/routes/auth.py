from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError
from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.audit import log_audit
from app.core.config import settings
from app.core.db import get_session
from app.core.deps import get_current_user
from app.core.logging import user_id_ctx_var
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash_async,
    hash_token,
    token_matches,
    verify_password_async,
)
from app.models.user import User
from app.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshResponse,
)
from app.schemas.common import MessageResponse

router = APIRouter(prefix="/auth", tags=["auth"])


def _remote_addr(request: Request) -> str | None:
    return request.client.host if request.client else None


def _token_claims(user: User) -> dict:
    return {"sub": user.id, "email": user.email, "role": user.role.value}


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.ACCESS_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        domain=(settings.COOKIE_DOMAIN or None),  # guard for empty domain
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        domain=(settings.COOKIE_DOMAIN or None),
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        path="/",
    )


def _clear_auth_cookies(response: Response) -> None:
    for name in (settings.ACCESS_COOKIE_NAME, settings.REFRESH_COOKIE_NAME):
        response.delete_cookie(
            key=name,
            path="/",
            domain=(settings.COOKIE_DOMAIN or None),
            secure=settings.COOKIE_SECURE,
            httponly=True,
            samesite=settings.COOKIE_SAMESITE,
        )


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    user = (
        await session.execute(select(User).where(User.email == payload.email))
    ).scalar_one_or_none()

    if not user or not await verify_password_async(payload.password, user.password_hash):
        if user:
            await log_audit(
                session,
                user.id,
                "auth",
                user.id,
                "LOGIN_FAILED",
                details={"reason": "invalid_credentials"},
                remote_addr=_remote_addr(request),
            )
            await session.commit()
        logger.bind(email=payload.email).info("login_failed")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    if not user.active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is deactivated",
        )

    request.state.user_id = user.id
    user_id_ctx_var.set(user.id)
    access_token = create_access_token(_token_claims(user))
    refresh_token = create_refresh_token(_token_claims(user))

    # Only stamp last_login_at on successful login (do NOT touch updated_at here)
    await session.execute(
        update(User)
        .where(User.id == user.id)
        .values(last_login_at=datetime.now(), refresh_token_hash=hash_token(refresh_token))
        .execution_options(synchronize_session=False)
    )
    await log_audit(
        session,
        user.id,
        "auth",
        user.id,
        "LOGIN",
        details=None,
        remote_addr=_remote_addr(request),
    )
    await session.commit()

    _set_auth_cookies(response, access_token, refresh_token)
    logger.bind(user_id=user.id).info("login_succeeded")
    return {
        "accessToken": access_token,
        "user": {"id": user.id, "email": user.email, "role": user.role},
    }


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Refresh token not found. Please login again.",
        )
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token"
    )
    try:
        payload = decode_token(token, "refresh")
    except JWTError:
        raise invalid

    user = (
        await session.execute(select(User).where(User.id == payload.get("sub")))
    ).scalar_one_or_none()
    if not user or not user.active or not token_matches(token, user.refresh_token_hash):
        logger.bind(user_id=payload.get("sub")).warning("refresh_rejected")
        raise invalid

    request.state.user_id = user.id
    user_id_ctx_var.set(user.id)
    new_access = create_access_token(_token_claims(user))
    new_refresh = create_refresh_token(_token_claims(user))

    # Rotate: the presented refresh token stops working once this commits.
    result = await session.execute(
        update(User)
        .where(User.id == user.id, User.refresh_token_hash == user.refresh_token_hash)
        .values(refresh_token_hash=hash_token(new_refresh))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        raise invalid
    await log_audit(
        session,
        user.id,
        "auth",
        user.id,
        "REFRESH",
        details=None,
        remote_addr=_remote_addr(request),
    )
    await session.commit()

    _set_auth_cookies(response, new_access, new_refresh)
    return {"accessToken": new_access}


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    await session.execute(
        update(User)
        .where(User.id == user.id)
        .values(refresh_token_hash=None)
        .execution_options(synchronize_session=False)
    )
    await log_audit(
        session,
        user.id,
        "auth",
        user.id,
        "LOGOUT",
        details=None,
        remote_addr=_remote_addr(request),
    )
    await session.commit()
    _clear_auth_cookies(response)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    if not await verify_password_async(payload.old_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Old password is incorrect")

    hashed = await get_password_hash_async(payload.new_password)
    await session.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            password_hash=hashed,
            refresh_token_hash=None,
            updated_at=datetime.now(),  # application-level update (OK to stamp)
        )
        .execution_options(synchronize_session=False)
    )

    await log_audit(
        session,
        user.id,
        "auth",
        user.id,
        "CHANGE_PWD",
        details=None,
        remote_addr=_remote_addr(request),
    )
    await session.commit()
    _clear_auth_cookies(response)
    return {"message": "Password changed successfully. Please login again."}
