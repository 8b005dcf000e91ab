"""Create tables and upsert the default OWNER and VIEWER accounts.

Usage: python scripts/seed_users.py
"""

import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from loguru import logger
from sqlalchemy import select

from app.core.config import settings
from app.core.db import SessionLocal, create_all
from app.core.logging import setup_logging
from app.core.security import get_password_hash_async
from app.models.user import Role, User

VIEWER_EMAIL = "viewer@example.com"
VIEWER_PASSWORD = "viewer123"


async def upsert_user(session, email: str, password: str, role: Role) -> User:
    user = await session.scalar(select(User).where(User.email == email))
    password_hash = await get_password_hash_async(password)
    if user is None:
        user = User(email=email, password_hash=password_hash, role=role, active=True)
        session.add(user)
        logger.bind(email=email, role=role.value).info("seed_user_created")
    else:
        user.password_hash = password_hash
        user.role = role
        user.active = True
        logger.bind(email=email, role=role.value).info("seed_user_updated")
    return user


async def seed(session_factory=SessionLocal) -> None:
    await create_all()
    async with session_factory() as session:
        async with session.begin():
            await upsert_user(
                session, settings.ADMIN_EMAIL.lower(), settings.ADMIN_PASSWORD, Role.OWNER
            )
            await upsert_user(session, VIEWER_EMAIL, VIEWER_PASSWORD, Role.VIEWER)


def main() -> None:
    setup_logging()
    asyncio.run(seed())
    print(f"Seeded owner {settings.ADMIN_EMAIL} and viewer {VIEWER_EMAIL}")


if __name__ == "__main__":
    main()
