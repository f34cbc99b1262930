from __future__ import annotations
import asyncio
import uuid
import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.config import settings
from app.db import Base, SessionLocal, engine
from app.main import app
from app.models.user import User, Profile, UserRole
from app.security import hash_password
from app.services import storage
import app.routes.photos as photo_routes
import app.routes.profiles as profile_routes

PASSWORD = "supersecret"


def _prepare_database() -> str | None:
    """Create the schema if the database is reachable. Returns the failure, if any."""
    async def _go():
        eng = create_async_engine(settings.database_url, poolclass=NullPool)
        try:
            async with eng.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        finally:
            await eng.dispose()
    try:
        asyncio.run(asyncio.wait_for(_go(), timeout=10))
    except Exception as e:
        return f"{type(e).__name__}: {e}"
    return None


@pytest.fixture(scope="session")
def database():
    error = _prepare_database()
    if error:
        pytest.skip(f"PostgreSQL unavailable ({error})")


@pytest_asyncio.fixture
async def client(database):
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    # pooled connections belong to this test's event loop
    await engine.dispose()


@pytest_asyncio.fixture
async def session(database):
    async with SessionLocal() as s:
        yield s
    await engine.dispose()


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.failing: set[str] = set()
        self.removed: list[str] = []

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        self.objects[key] = (data, content_type)

    def get_bytes(self, key: str) -> tuple[bytes, str]:
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key]

    def remove_object(self, key: str) -> None:
        if key in self.failing:
            raise RuntimeError(f"storage unavailable for {key}")
        if key not in self.objects:
            raise FileNotFoundError(key)
        del self.objects[key]
        self.removed.append(key)


@pytest.fixture
def fake_storage(monkeypatch):
    fs = FakeStorage()
    monkeypatch.setattr(storage, "put_bytes", fs.put_bytes)
    monkeypatch.setattr(storage, "get_bytes", fs.get_bytes)
    monkeypatch.setattr(storage, "remove_object", fs.remove_object)
    for module in (photo_routes, profile_routes):
        monkeypatch.setattr(module, "put_bytes", fs.put_bytes)
        monkeypatch.setattr(module, "get_bytes", fs.get_bytes)
    return fs


async def signup(
    ac: AsyncClient,
    *,
    country: str = "US",
    languages: list[str] | None = None,
    user_type: str = "local",
    name: str = "Tester",
) -> dict:
    """Register, log in and create a profile. Returns {"id", "headers"}."""
    email = f"u-{uuid.uuid4()}@example.com"
    r = await ac.post("/auth/register", json={"email": email, "password": PASSWORD})
    assert r.status_code == 201, r.text
    tokens = (await ac.post("/auth/login", json={"email": email, "password": PASSWORD})).json()
    hdrs = {"Authorization": f"Bearer {tokens['access']}"}
    r = await ac.post("/profiles", headers=hdrs, json={
        "display_name": name,
        "home_country": country,
        "languages": languages or ["en"],
        "user_type": user_type,
    })
    assert r.status_code == 201, r.text
    return {"id": r.json()["id"], "headers": hdrs}


async def grant_role(user_id: str, role: str = "moderator") -> None:
    async with SessionLocal() as s:
        s.add(UserRole(user_id=uuid.UUID(user_id), role=role))
        await s.commit()


async def make_profile(session, **overrides) -> Profile:
    """Insert a user and profile directly, for service-level tests."""
    user = User(email=f"svc-{uuid.uuid4()}@example.com", password_hash=hash_password(PASSWORD))
    session.add(user)
    await session.flush()
    fields = {"display_name": "Svc", "home_country": "US", "languages": ["en"], "user_type": "local"}
    fields.update(overrides)
    profile = Profile(id=user.id, **fields)
    session.add(profile)
    await session.commit()
    return profile
