"""Test fixtures: in-memory SQLite identity store, in-memory object store, app client."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import BinaryIO, Iterator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from minidrive.config import Settings
from minidrive.database import get_db
from minidrive.exceptions import NotFound
from minidrive.main import create_app
from minidrive.models.base import Base
from minidrive.services import Services
from minidrive.services.identity_service import IdentityService
from minidrive.services.object_store import (
    DEFAULT_CONTENT_TYPE,
    ObjectDownload,
    ObjectInfo,
    ObjectStat,
    ObjectStore,
)
from minidrive.services.token_service import Identity, Role, TokenService

TEST_SECRET = "test-secret-32-chars-long-enough!"

ALICE = Identity(user_id="alice", username="Alice", email="alice@example.com", role=Role.USER)
BOB = Identity(user_id="bob", username="Bob", email="bob@example.com", role=Role.USER)
ROOT = Identity(user_id="root", username="Root", email="root@example.com", role=Role.ADMIN)


class InMemoryObjectStore(ObjectStore):
    """Dict-backed store with S3-like lexicographic listing."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, ObjectStat]] = {}
        self.writes = 0
        self.deletes = 0
        self.releases = 0

    def ensure_bucket(self) -> None:
        pass

    def put(self, key: str, data: BinaryIO, size: int, content_type: Optional[str] = None) -> None:
        payload = data.read()
        self.objects[key] = (
            payload,
            ObjectStat(
                key=key,
                size=len(payload),
                last_modified=datetime.now(timezone.utc),
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                etag=f"etag-{len(payload)}",
            ),
        )
        self.writes += 1

    def add(self, key: str, payload: bytes = b"", modified: Optional[datetime] = None) -> None:
        self.objects[key] = (
            payload,
            ObjectStat(key=key, size=len(payload), last_modified=modified or datetime.now(timezone.utc)),
        )

    def stat(self, key: str) -> ObjectStat:
        if key not in self.objects:
            raise NotFound(f"File not found: {key}")
        return self.objects[key][1]

    def get(self, key: str) -> ObjectDownload:
        stat = self.stat(key)
        payload = self.objects[key][0]

        def _release() -> None:
            self.releases += 1

        return ObjectDownload(
            key=key,
            size=len(payload),
            content_type=stat.content_type,
            chunks=[payload],
            release=_release,
        )

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)
        self.deletes += 1

    def list_objects(self, prefix: str = "", recursive: bool = True) -> Iterator[ObjectInfo]:
        seen_dirs: set[str] = set()
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            stat = self.objects[key][1]
            rest = key[len(prefix):]
            if not recursive and "/" in rest:
                directory = prefix + rest.split("/", 1)[0] + "/"
                if directory not in seen_dirs:
                    seen_dirs.add(directory)
                    yield ObjectInfo(key=directory, is_dir=True)
                continue
            yield ObjectInfo(
                key=key,
                size=stat.size,
                last_modified=stat.last_modified,
                content_type=stat.content_type,
            )


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def expired_token_service() -> TokenService:
    """Same secret, but every token it issues is already past ``exp``."""
    return TokenService(
        secret_key=TEST_SECRET,
        access_ttl=timedelta(seconds=-60),
        refresh_ttl=timedelta(seconds=-60),
    )


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(mode="test")


@pytest_asyncio.fixture
async def db_session():
    """Provide an async in-memory SQLite session for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> IdentityService:
    """Identity store holding alice, bob (users) and root (admin)."""
    identities = IdentityService(db_session)
    for identity, password in ((ALICE, "alice-pw"), (BOB, "bob-pw"), (ROOT, "root-pw")):
        await identities.create_user(
            identity.user_id,
            identity.username,
            password,
            email=identity.email,
            role=identity.role,
        )
    return identities


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, token_service: TokenService, store: InMemoryObjectStore, test_settings: Settings):
    """Provide an async test client with overridden DB and injected services."""
    app = create_app(
        settings=test_settings,
        services=Services(token_service=token_service, object_store=store),
    )

    async def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def alice() -> Identity:
    return ALICE


@pytest.fixture
def bob() -> Identity:
    return BOB


@pytest.fixture
def root() -> Identity:
    return ROOT


@pytest.fixture
def auth_headers(token_service: TokenService):
    """Build a Bearer header for an identity."""

    def _headers(identity: Identity) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_service.issue_access_token(identity)}"}

    return _headers
