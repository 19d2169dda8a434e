"""Tests for the application factory's wiring of injected settings."""

import pytest
from httpx import ASGITransport, AsyncClient

from minidrive.config import Settings
from minidrive.database import IdentityDatabase
from minidrive.main import create_app
from minidrive.services import Services
from minidrive.services.identity_service import IdentityService
from minidrive.services.token_service import Role


@pytest.fixture
def isolated_settings(tmp_path):
    return Settings(mode="dev", data_dir=str(tmp_path), database_path=str(tmp_path / "ids.db"))


@pytest.fixture
def isolated_app(isolated_settings, token_service, store):
    return create_app(
        settings=isolated_settings,
        services=Services(token_service=token_service, object_store=store),
    )


def test_identity_database_uses_injected_path(isolated_app, isolated_settings):
    database: IdentityDatabase = isolated_app.state.database
    assert str(database.path) == isolated_settings.database_path
    assert database.engine.url.database == isolated_settings.database_path


@pytest.mark.asyncio
async def test_lifespan_seeds_configured_database(isolated_app, isolated_settings, tmp_path):
    async with isolated_app.router.lifespan_context(isolated_app):
        pass

    assert (tmp_path / "ids.db").exists()
    database = IdentityDatabase(isolated_settings.database_path)
    try:
        async with database.sessionmaker() as db:
            admin = await IdentityService(db).resolve("admin")
    finally:
        await database.dispose()
    assert admin is not None
    assert admin.role is Role.ADMIN


@pytest.mark.asyncio
async def test_requests_use_the_app_database(isolated_app):
    database: IdentityDatabase = isolated_app.state.database
    await database.create_tables()
    async with database.sessionmaker() as db:
        await IdentityService(db).create_user("carol", "Carol", "carol-pw")

    try:
        transport = ASGITransport(app=isolated_app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.post("/api/auth/login", json={"userID": "carol", "password": "carol-pw"})
    finally:
        await database.dispose()

    assert resp.status_code == 200
    assert resp.json()["user"]["userID"] == "carol"
