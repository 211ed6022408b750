# tests/conftest.py
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import jwt
import pytest
import pytest_asyncio

from app.core import config
from app.core.database.engine import build_engine, build_session_factory, get_db, init_db
from app.features.permissions.enforcement import default_enforcer
from app.features.schools.models import School
from app.features.users.models import User, UserRole, UserStatus


# ---------------------------------------------------------------------------
# Database: a fresh SQLite file per test
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine, monkeypatch):
    """Session factory for the test database, also used by the default enforcer."""
    factory = build_session_factory(db_engine)
    monkeypatch.setattr(default_enforcer, "session_factory", factory)
    return factory


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest.fixture
def make_user(db):
    async def _make_user(
        username: str,
        role: UserRole = UserRole.EMPLOYEE,
        status: UserStatus = UserStatus.APPROVED,
    ) -> User:
        user = User(username=username, name=username.title(), role=role, status=status)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_school(db):
    async def _make_school(school_id: int, name: str | None = None) -> School:
        school = School(id=school_id, name=name or f"School {school_id}")
        db.add(school)
        await db.commit()
        await db.refresh(school)
        return school

    return _make_school


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------
def _bearer_token(username: str, expires_in: timedelta = timedelta(hours=1), secret: str | None = None) -> str:
    return jwt.encode(
        {"sub": username, "exp": datetime.now(timezone.utc) + expires_in},
        secret or config.JWT_SECRET,
        algorithm=config.JWT_ALGORITHM,
    )


@pytest.fixture
def bearer_token():
    return _bearer_token


@pytest.fixture
def auth_headers():
    def _auth_headers(username: str) -> dict:
        return {"Authorization": f"Bearer {_bearer_token(username)}"}

    return _auth_headers


@pytest_asyncio.fixture
async def client(session_factory):
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
