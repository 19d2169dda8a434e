"""Tests for the per-user file routes."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from minidrive.config import Settings
from minidrive.database import get_db
from minidrive.main import create_app
from minidrive.services import Services


async def _upload(client, headers, name, content=b"hello", path="", **form):
    return await client.post(
        "/api/upload",
        headers=headers,
        files={"file": (name, content, "text/plain")},
        data={"path": path, **form},
    )


@pytest.mark.asyncio
async def test_upload_then_list(client: AsyncClient, store, auth_headers, alice):
    headers = auth_headers(alice)
    resp = await _upload(client, headers, "f1.txt", b"hello")
    assert resp.status_code == 200
    assert resp.json() == {"key": "alice/f1.txt", "path": "", "filename": "f1.txt", "size": 5}
    assert store.objects["alice/f1.txt"][0] == b"hello"
    assert store.objects["alice/f1.txt"][1].content_type == "text/plain"

    resp = await client.get("/api/list", headers=headers)
    data = resp.json()
    assert data["userID"] == "alice"
    assert [f["name"] for f in data["files"]] == ["f1.txt"]
    assert data["files"][0]["size"] == 5
    assert data["files"][0]["contentType"] == "text/plain"
    assert data["folders"] == []


@pytest.mark.asyncio
async def test_upload_into_normalized_path(client: AsyncClient, store, auth_headers, alice):
    resp = await _upload(client, auth_headers(alice), "f.txt", path="/a/b/")
    assert resp.json()["key"] == "alice/a/b/f.txt"
    assert resp.json()["path"] == "a/b"


@pytest.mark.asyncio
async def test_upload_with_explicit_filename(client: AsyncClient, store, auth_headers, alice):
    resp = await _upload(client, auth_headers(alice), "local.txt", filename="renamed.txt")
    assert resp.json()["key"] == "alice/renamed.txt"


@pytest.mark.asyncio
async def test_mkdir_then_list(client: AsyncClient, store, auth_headers, alice):
    headers = auth_headers(alice)
    await _upload(client, headers, "f1.txt")
    resp = await client.post("/api/mkdir", headers=headers, params={"path": "sub"})
    assert resp.status_code == 200
    assert resp.json() == {"created": "alice/sub/.keep", "path": "sub"}
    assert store.objects["alice/sub/.keep"][0] == b""

    data = (await client.get("/api/list", headers=headers)).json()
    assert [f["name"] for f in data["files"]] == ["f1.txt"]
    assert [f["name"] for f in data["folders"]] == ["sub"]
    assert data["folders"][0]["type"] == "folder"
    assert data["folders"][0]["itemCount"] == 0


@pytest.mark.asyncio
async def test_list_subfolder(client: AsyncClient, store, auth_headers, alice):
    headers = auth_headers(alice)
    await client.post("/api/mkdir", headers=headers, params={"path": "sub"})
    await _upload(client, headers, "f2.txt", path="sub")

    data = (await client.get("/api/list", headers=headers, params={"path": "sub"})).json()
    assert [f["name"] for f in data["files"]] == ["f2.txt"]
    assert data["folders"] == []
    assert data["path"] == "sub"
    assert data["statistics"]["totalFiles"] == 1
    assert data["statistics"]["totalSizeHuman"] == "5 B"


@pytest.mark.asyncio
async def test_mkdir_requires_path(client: AsyncClient, store, auth_headers, alice):
    resp = await client.post("/api/mkdir", headers=auth_headers(alice), params={"path": "/"})
    assert resp.status_code == 400
    assert store.writes == 0


@pytest.mark.asyncio
async def test_download(client: AsyncClient, store, auth_headers, alice):
    store.add("alice/docs/report.txt", b"report body")
    resp = await client.get(
        "/api/download",
        headers=auth_headers(alice),
        params={"path": "docs", "filename": "report.txt"},
    )
    assert resp.status_code == 200
    assert resp.content == b"report body"
    assert resp.headers["content-disposition"] == "attachment; filename*=UTF-8''report.txt"


@pytest.mark.asyncio
async def test_download_releases_store_connection(client: AsyncClient, store, auth_headers, alice):
    store.add("alice/a.bin", b"0123456789")
    resp = await client.get("/api/download", headers=auth_headers(alice), params={"filename": "a.bin"})
    assert resp.headers["content-length"] == "10"
    assert len(resp.content) == 10
    assert store.releases == 1


@pytest.mark.asyncio
async def test_download_missing(client: AsyncClient, store, auth_headers, alice):
    resp = await client.get("/api/download", headers=auth_headers(alice), params={"filename": "nope.txt"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_download_requires_filename(client: AsyncClient, auth_headers, alice):
    resp = await client.get("/api/download", headers=auth_headers(alice))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_info(client: AsyncClient, store, auth_headers, alice):
    store.add("alice/a.txt", b"abc")
    resp = await client.get("/api/info", headers=auth_headers(alice), params={"filename": "a.txt"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "a.txt"
    assert data["size"] == 3
    assert data["contentType"] == "application/octet-stream"


@pytest.mark.asyncio
async def test_delete(client: AsyncClient, store, auth_headers, alice):
    store.add("alice/a.txt", b"abc")
    resp = await client.delete("/api/delete", headers=auth_headers(alice), params={"filename": "a.txt"})
    assert resp.status_code == 200
    assert resp.json() == {"deleted": "alice/a.txt"}
    assert "alice/a.txt" not in store.objects


@pytest.mark.asyncio
async def test_delete_missing(client: AsyncClient, store, auth_headers, alice):
    resp = await client.delete("/api/delete", headers=auth_headers(alice), params={"filename": "a.txt"})
    assert resp.status_code == 404
    assert store.deletes == 0


class TestIsolation:
    @pytest.mark.asyncio
    async def test_users_see_only_their_files(self, client: AsyncClient, store, auth_headers, alice, bob):
        store.add("alice/secret.txt", b"alice only")
        store.add("bob/mine.txt", b"bob")

        data = (await client.get("/api/list", headers=auth_headers(bob))).json()
        assert [f["name"] for f in data["files"]] == ["mine.txt"]

        resp = await client.get("/api/download", headers=auth_headers(bob), params={"filename": "secret.txt"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../alice", "..", "a/../../alice", "..\\alice"])
    async def test_traversal_rejected(self, client: AsyncClient, store, auth_headers, bob, path):
        store.add("alice/secret.txt", b"alice only")
        headers = auth_headers(bob)

        assert (await client.get("/api/list", headers=headers, params={"path": path})).status_code == 400
        resp = await client.get(
            "/api/download", headers=headers, params={"path": path, "filename": "secret.txt"}
        )
        assert resp.status_code == 400
        assert (await _upload(client, headers, "x.txt", path=path)).status_code == 400
        resp = await client.delete(
            "/api/delete", headers=headers, params={"path": path, "filename": "secret.txt"}
        )
        assert resp.status_code == 400
        assert store.writes == 0
        assert store.deletes == 0
        assert "alice/secret.txt" in store.objects

    @pytest.mark.asyncio
    async def test_client_supplied_user_id_is_ignored(self, client: AsyncClient, store, auth_headers, bob):
        resp = await _upload(client, auth_headers(bob), "x.txt", userID="alice")
        assert resp.json()["key"] == "bob/x.txt"


class TestGatedRoutes:
    @pytest.mark.asyncio
    async def test_no_token(self, client: AsyncClient, store):
        assert (await client.get("/api/list")).status_code == 401
        assert (await _upload(client, {}, "x.txt")).status_code == 401
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_expired_token_has_no_side_effects(self, client: AsyncClient, store, expired_token_service, alice):
        store.add("alice/a.txt", b"abc")
        headers = {"Authorization": f"Bearer {expired_token_service.issue_access_token(alice)}"}

        assert (await _upload(client, headers, "x.txt")).status_code == 401
        assert (await client.post("/api/mkdir", headers=headers, params={"path": "d"})).status_code == 401
        assert (
            await client.delete("/api/delete", headers=headers, params={"filename": "a.txt"})
        ).status_code == 401
        assert store.writes == 0
        assert store.deletes == 0
        assert "alice/a.txt" in store.objects


class TestBatchUploads:
    @pytest.mark.asyncio
    async def test_upload_multiple(self, client: AsyncClient, store, auth_headers, alice):
        resp = await client.post(
            "/api/upload-multiple",
            headers=auth_headers(alice),
            files=[
                ("files", ("a.txt", b"a", "text/plain")),
                ("files", ("b.txt", b"bb", "text/plain")),
            ],
            data={"path": "batch"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["uploaded"] == ["alice/batch/a.txt", "alice/batch/b.txt"]
        assert (data["total"], data["success"], data["failed"]) == (2, 2, 0)
        assert store.objects["alice/batch/b.txt"][0] == b"bb"

    @pytest.mark.asyncio
    async def test_upload_folder_keeps_structure(self, client: AsyncClient, store, auth_headers, alice):
        resp = await client.post(
            "/api/upload-folder",
            headers=auth_headers(alice),
            files=[
                ("files", ("photos/2026/a.jpg", b"a", "image/jpeg")),
                ("files", ("photos/readme.txt", b"r", "text/plain")),
                ("files", ("../escape.txt", b"x", "text/plain")),
            ],
            data={"path": "backup"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["uploaded"] == ["alice/backup/photos/2026/a.jpg", "alice/backup/photos/readme.txt"]
        assert data["failed"] == 1
        assert "../escape.txt" in data["errors"][0]

        listing = (await client.get("/api/list", headers=auth_headers(alice), params={"path": "backup"})).json()
        assert [f["name"] for f in listing["folders"]] == ["photos"]
        assert listing["folders"][0]["itemCount"] == 2


@pytest_asyncio.fixture
async def small_client(db_session, token_service, store):
    """Client whose upload limit is 16 bytes."""
    app = create_app(
        settings=Settings(mode="test", max_upload_bytes=16, max_folder_upload_bytes=16),
        services=Services(token_service=token_service, object_store=store),
    )

    async def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.mark.asyncio
async def test_oversized_upload_rejected(small_client: AsyncClient, store, auth_headers, alice):
    resp = await _upload(small_client, auth_headers(alice), "big.bin", b"x" * 1024)
    assert resp.status_code == 413
    assert store.writes == 0


@pytest.mark.asyncio
async def test_oversized_folder_upload_rejected(small_client: AsyncClient, store, auth_headers, alice):
    resp = await small_client.post(
        "/api/upload-folder",
        headers=auth_headers(alice),
        files=[("files", ("d/big.bin", b"x" * 1024, "application/octet-stream"))],
    )
    assert resp.status_code == 413
    assert store.writes == 0
