import pytest

from marketplace.api.v1.endpoints.uploads import get_store
from marketplace.main import app
from marketplace.services.storage import LocalObjectStore
from tests.fixtures_seed import auth

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def store(tmp_path, client):
    store = LocalObjectStore(str(tmp_path / "uploads"), "http://test/static")
    app.dependency_overrides[get_store] = lambda: store
    return store


def test_store_rejects_keys_outside_root(tmp_path):
    store = LocalObjectStore(str(tmp_path), "http://cdn.test/static")
    with pytest.raises(ValueError):
        store.resolve_path("../escape.txt")
    assert store.key_from_url("http://cdn.test/static/uploads/a.png") == "uploads/a.png"
    assert store.key_from_url("https://elsewhere.test/a.png") is None


@pytest.mark.asyncio
async def test_upload_and_delete(client, store, seller):
    files = [("images", ("a.png", PNG, "image/png")), ("images", ("b.jpg", b"jpeg-bytes", "image/jpeg"))]
    r = await client.post("/api/uploads", files=files, headers=auth(seller["token"]))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["count"] == 2
    first, second = body["urls"]
    assert first.startswith(f"http://test/static/uploads/{seller['id']}/")
    assert first.endswith(".png")
    assert second.endswith(".jpg")
    assert store.exists(store.key_from_url(first))

    r = await client.request("DELETE", "/api/uploads", json={"url": first}, headers=auth(seller["token"]))
    assert r.status_code == 200
    assert not store.exists(store.key_from_url(first))

    r = await client.request("DELETE", "/api/uploads", json={"url": first}, headers=auth(seller["token"]))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_cannot_delete_someone_elses_file(client, store, seller, buyer):
    r = await client.post(
        "/api/uploads", files=[("images", ("a.png", PNG, "image/png"))], headers=auth(seller["token"])
    )
    url = r.json()["urls"][0]

    r = await client.request("DELETE", "/api/uploads", json={"url": url}, headers=auth(buyer["token"]))
    assert r.status_code == 403
    assert store.exists(store.key_from_url(url))


@pytest.mark.asyncio
async def test_upload_validation(client, store, seller):
    r = await client.post(
        "/api/uploads", files=[("images", ("notes.txt", b"hello", "text/plain"))], headers=auth(seller["token"])
    )
    assert r.status_code == 400

    r = await client.post(
        "/api/uploads", files=[("images", ("a.png", PNG, "image/png"))]
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_too_many_files(client, store, seller, monkeypatch):
    from marketplace.core.config import settings

    monkeypatch.setattr(settings, "upload_max_files", 2)
    files = [("images", (f"{i}.png", PNG, "image/png")) for i in range(3)]
    r = await client.post("/api/uploads", files=files, headers=auth(seller["token"]))
    assert r.status_code == 400
    assert list((store.base / "uploads").glob("**/*.png")) == []


@pytest.mark.asyncio
async def test_unknown_image_type_is_rejected(client, store, seller):
    files = [("images", ("x.html", b"<script>alert(1)</script>", "image/x-evil"))]
    r = await client.post("/api/uploads", files=files, headers=auth(seller["token"]))
    assert r.status_code == 400
    assert r.json()["errors"][0]["field"] == "images"
    assert list(store.base.glob("**/*.*")) == []
