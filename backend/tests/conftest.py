import os
import sys
from pathlib import Path

import pytest

# Ensure required environment variables are present before settings import
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret")
os.environ["DB_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENV"] = "test"
os.environ.pop("SENTRY_DSN", None)

# Add the backend directory so `app` package imports resolve during tests
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.append(str(BACKEND_DIR))

from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.cache import clear_memory_cache  # noqa: E402
from app.core.db import SessionLocal, create_all, engine  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.core.security import get_password_hash  # noqa: E402
from app.core.storage import InMemoryStorageClient, get_storage  # noqa: E402
from app.models.user import Role, User  # noqa: E402

OWNER_EMAIL = "owner@portfolio.com"
OWNER_PASSWORD = "Owner@123456"
VIEWER_EMAIL = "viewer@portfolio.com"
VIEWER_PASSWORD = "Viewer@123456"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db(anyio_backend):
    """Fresh in-memory schema per test; disposing the pool drops the database."""

    await create_all()
    clear_memory_cache()
    limiter.reset()
    yield
    clear_memory_cache()
    await engine.dispose()


@pytest.fixture
def storage():
    return InMemoryStorageClient()


@pytest.fixture
async def client(db, storage):
    from app.main import app

    app.dependency_overrides[get_storage] = lambda: storage
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_user(
    email: str, password: str, role: Role = Role.VIEWER, active: bool = True
) -> User:
    async with SessionLocal() as session:
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            active=active,
        )
        session.add(user)
        await session.commit()
        return user


async def login(client: AsyncClient, email: str, password: str):
    return await client.post(
        "/api/auth/login", json={"email": email, "password": password}
    )


async def bearer_for(client: AsyncClient, email: str, password: str) -> dict[str, str]:
    """Log in and return an Authorization header, leaving no cookies behind."""

    response = await login(client, email, password)
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


@pytest.fixture
async def owner(db) -> User:
    return await create_user(OWNER_EMAIL, OWNER_PASSWORD, Role.OWNER)


@pytest.fixture
async def viewer(db) -> User:
    return await create_user(VIEWER_EMAIL, VIEWER_PASSWORD, Role.VIEWER)


@pytest.fixture
async def owner_headers(client, owner) -> dict[str, str]:
    return await bearer_for(client, OWNER_EMAIL, OWNER_PASSWORD)


@pytest.fixture
async def viewer_headers(client, viewer) -> dict[str, str]:
    return await bearer_for(client, VIEWER_EMAIL, VIEWER_PASSWORD)


def project_payload(**overrides) -> dict:
    payload = {
        "title": "Portfolio Site",
        "shortDescription": "Personal portfolio",
        "content": "Built with FastAPI and React.",
        "techStack": ["Python", "FastAPI"],
        "githubUrl": "https://github.com/example/portfolio",
    }
    payload.update(overrides)
    return payload
