"""
Pytest fixtures for test database, client, and authentication.

Every test gets its own SQLite database file (or TEST_DATABASE_URL when set)
with tables created up front, an in-memory storage backend, and Redis
disabled, so the cache layer is a no-op.
"""

import os
import tempfile

# Must be set before the application modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./eventhub-import.db")
os.environ["REDIS_ENABLED"] = "false"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="eventhub-uploads-"))

import io  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import AsyncGenerator, BinaryIO  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from eventhub.core.security import create_access_token, hash_password  # noqa: E402
from eventhub.db.base import Base  # noqa: E402
from eventhub.db.session import get_db  # noqa: E402
from eventhub.main import app  # noqa: E402
from eventhub.models.event import Event, EventCategory, EventStatus  # noqa: E402
from eventhub.models.user import User, UserRole  # noqa: E402
from eventhub.storage import StorageAdapter, get_storage  # noqa: E402

PASSWORD = "Testpassword123"


class MemoryStorage(StorageAdapter):
    """Keeps uploaded bytes in a dict. `fail_deletes` simulates a broken backend."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.fail_deletes = False

    def put_file(self, key: str, fileobj: BinaryIO) -> int:
        data = fileobj.read()
        self.files[key] = data
        return len(data)

    def open(self, key: str) -> BinaryIO:
        return io.BytesIO(self.files[key])

    def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise OSError("storage backend unavailable")
        self.files.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self.files


def event_fields(**overrides) -> dict:
    """Column values for a valid event starting in 30 days."""
    start = datetime.now(timezone.utc) + timedelta(days=30)
    fields = {
        "title": "Test Concert",
        "description": "A test event with enough description text",
        "category": EventCategory.CONCERT.value,
        "status": EventStatus.PUBLISHED.value,
        "start_date": start,
        "end_date": start + timedelta(hours=3),
        "location_address": "1 Rue de Rivoli",
        "location_city": "Paris",
        "location_country": "France",
        "capacity": 100,
        "price": 0,
        "tags": [],
        "registration_count": 0,
    }
    fields.update(overrides)
    return fields


def event_payload(**overrides) -> dict:
    """JSON body for POST /events."""
    start = datetime.now(timezone.utc) + timedelta(days=30)
    payload = {
        "title": "Python Conference 2026",
        "description": "Annual gathering of Python developers",
        "category": "conference",
        "start_date": start.isoformat(),
        "end_date": (start + timedelta(hours=8)).isoformat(),
        "location": {"address": "1 Place de la Bourse", "city": "Lyon"},
        "capacity": 500,
        "price": 25,
        "tags": ["python", "backend"],
    }
    payload.update(overrides)
    return payload


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_async_engine(url, echo=False, poolclass=NullPool)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, storage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a fresh session per request and in-memory storage."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    async def _make_user(username: str, role: str = UserRole.USER.value, is_active: bool = True) -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            hashed_password=hash_password(PASSWORD),
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    return await make_user("testuser")


@pytest_asyncio.fixture
async def organizer(make_user) -> User:
    return await make_user("organizer")


@pytest_asyncio.fixture
async def attendee(make_user) -> User:
    return await make_user("attendee")


@pytest_asyncio.fixture
async def admin(make_user) -> User:
    return await make_user("admin", role=UserRole.ADMIN.value)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest_asyncio.fixture
async def organizer_headers(organizer: User) -> dict:
    return headers_for(organizer)


@pytest_asyncio.fixture
async def attendee_headers(attendee: User) -> dict:
    return headers_for(attendee)


@pytest_asyncio.fixture
async def admin_headers(admin: User) -> dict:
    return headers_for(admin)


@pytest_asyncio.fixture
async def make_event(db_session: AsyncSession):
    async def _make_event(organizer: User, **overrides) -> Event:
        event = Event(organizer_id=organizer.id, **event_fields(**overrides))
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make_event


@pytest_asyncio.fixture
async def published_event(make_event, organizer: User) -> Event:
    return await make_event(organizer)


@pytest_asyncio.fixture
async def draft_event(make_event, organizer: User) -> Event:
    return await make_event(organizer, title="Draft Workshop", status=EventStatus.DRAFT.value)
