"""Password hashing and JWT helper utilities."""

from __future__ import annotations

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Literal

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.concurrency import run_in_thread_security
from app.core.config import settings

TokenType = Literal["access", "refresh"]

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if the plain password matches the stored hash."""

    return pwd_context.verify(plain_password, hashed_password)


async def verify_password_async(plain: str, hashed: str) -> bool:
    """Verify the provided password hash in a background thread."""

    return await run_in_thread_security(verify_password, plain, hashed)


def get_password_hash(password: str) -> str:
    """Hash a password using the configured context."""

    return pwd_context.hash(password)


async def get_password_hash_async(plain: str) -> str:
    """Hash a password in a background thread to avoid blocking the loop."""

    return await run_in_thread_security(get_password_hash, plain)


def hash_token(token: str) -> str:
    """Digest a refresh token for storage.

    bcrypt only looks at the first 72 bytes, and two JWTs for the same user
    share a much longer prefix, so a full-length digest is used instead.
    """

    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, stored_hash: str | None) -> bool:
    if not stored_hash:
        return False
    return hmac.compare_digest(hash_token(token), stored_hash)


# JWT helpers
ALGORITHM = "HS256"


def _secret_for(kind: TokenType) -> str:
    return settings.JWT_SECRET if kind == "access" else settings.REFRESH_TOKEN_SECRET


def _create_token(data: Dict[str, Any], kind: TokenType, expires: timedelta) -> str:
    now = datetime.now(timezone.utc)
    expire = now + expires
    to_encode = data.copy()
    to_encode.update(
        {
            "type": kind,
            "jti": uuid.uuid4().hex,
            "exp": expire,
            "iat": now,
            "nbf": now,
            "iss": settings.JWT_ISSUER,
            "aud": settings.JWT_AUDIENCE,
        }
    )
    return jwt.encode(to_encode, _secret_for(kind), algorithm=ALGORITHM)


def create_access_token(data: Dict[str, Any]) -> str:
    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES or 15
    return _create_token(data, "access", timedelta(minutes=minutes))


def create_refresh_token(data: Dict[str, Any]) -> str:
    days = settings.REFRESH_TOKEN_EXPIRE_DAYS or 7
    return _create_token(data, "refresh", timedelta(days=days))


def decode_token(token: str, kind: TokenType) -> Dict[str, Any]:
    """Verify ``token`` and return its claims.

    Raises ``jose.JWTError`` for bad signatures, expired tokens, wrong issuer
    or audience, and for a token of the other kind.
    """

    payload = jwt.decode(
        token,
        _secret_for(kind),
        algorithms=[ALGORITHM],
        audience=settings.JWT_AUDIENCE,
        issuer=settings.JWT_ISSUER,
    )
    if payload.get("type") != kind:
        raise JWTError("Invalid token type")
    return payload
