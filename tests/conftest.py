import os

# Must be set before any onay_auth import reads settings.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_SALT_ROUNDS", "4")

from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from onay_auth.core.database import build_engine, build_session_factory, get_db
from onay_auth.core.rate_limit import InMemoryAttemptStore, LoginRateLimiter, get_login_rate_limiter
from onay_auth.core.security import hash_password
from onay_auth.main import app
from onay_auth.models import Base, User, UserRole

DEFAULT_PASSWORD = "secret123"


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def create_user(session_factory):
    """Insert a user in its own committed transaction."""

    async def _create(
        login: str,
        password: str = DEFAULT_PASSWORD,
        role: UserRole = UserRole.USER,
        device_id: str | None = None,
        expires_at: datetime | None = None,
    ) -> User:
        async with session_factory() as session:
            user = User(
                login=login,
                password_hash=hash_password(password),
                role=role,
                device_id=device_id,
                expires_at=expires_at,
            )
            session.add(user)
            await session.commit()
            return user

    return _create


@pytest.fixture
def rate_limiter():
    return LoginRateLimiter(InMemoryAttemptStore(), max_attempts=12, window_seconds=60)


@pytest_asyncio.fixture
async def client(session_factory, rate_limiter):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_login_rate_limiter] = lambda: rate_limiter
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Log in through the API and return (token, session_id)."""

    async def _login(login: str, device_id: str, password: str = DEFAULT_PASSWORD):
        response = await client.post(
            "/auth/login",
            json={"login": login, "password": password, "deviceId": device_id},
        )
        assert response.status_code == 200, response.text
        # Tests pass the bearer header explicitly; keep the jar empty.
        client.cookies.clear()
        body = response.json()
        return body["token"], body["session_id"]

    return _login