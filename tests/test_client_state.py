import asyncio
import json

import httpx
import pytest

from marketplace.client.api import MarketplaceClient
from marketplace.client.state import ListingCache
from marketplace.main import app
from tests.fixtures_seed import PASSWORD


def _listing(listing_id: str, **extra) -> dict:
    return {"id": listing_id, "title": f"Listing {listing_id}", "price": 10, **extra}


def _page(ids, total=None, limit=12) -> dict:
    total = len(ids) if total is None else total
    return {
        "success": True,
        "count": len(ids),
        "pagination": {"total": total, "pages": -(-total // limit) if total else 0, "page": 1, "limit": limit},
        "listings": [_listing(i) for i in ids],
    }


def _cache(handler) -> tuple[ListingCache, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    async def recording(request: httpx.Request):
        seen.append(request)
        return await handler(request)

    client = MarketplaceClient("http://test", token="t", transport=httpx.MockTransport(recording))
    return ListingCache(client), seen


@pytest.mark.asyncio
async def test_stale_listing_response_is_dropped():
    release_old = asyncio.Event()

    async def handler(request):
        if request.url.params.get("search") == "old":
            await release_old.wait()
            return httpx.Response(200, json=_page(["old-1", "old-2"]))
        return httpx.Response(200, json=_page(["new-1"]))

    cache, _ = _cache(handler)
    old = asyncio.create_task(cache.load_listings({"search": "old"}))
    await asyncio.sleep(0.01)
    assert cache.is_loading("listings")

    await cache.load_listings({"search": "new"})
    release_old.set()
    stale = await old

    assert stale.ok
    assert [item["id"] for item in cache.listings] == ["new-1"]
    assert cache.pagination["total"] == 1
    assert cache.params == {"search": "new"}
    assert not cache.is_loading("listings")


@pytest.mark.asyncio
async def test_failed_load_keeps_previous_page_and_records_error():
    responses = iter([
        httpx.Response(200, json=_page(["a"])),
        httpx.Response(400, json={"success": False, "message": "Invalid listing query", "errors": []}),
    ])

    async def handler(request):
        return next(responses)

    cache, _ = _cache(handler)
    await cache.load_listings()
    result = await cache.load_listings({"minPrice": "x"})

    assert not result.ok
    assert result.status_code == 400
    assert [item["id"] for item in cache.listings] == ["a"]
    assert cache.errors["listings"] == "Invalid listing query"
    assert not cache.is_loading("listings")


@pytest.mark.asyncio
async def test_network_error_clears_loading():
    async def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    cache, _ = _cache(handler)
    result = await cache.load_listings()
    assert not result.ok
    assert result.status_code is None
    assert not cache.is_loading("listings")
    assert cache.errors["listings"]


@pytest.mark.asyncio
async def test_second_create_while_pending_sends_no_request():
    release = asyncio.Event()

    async def handler(request):
        await release.wait()
        return httpx.Response(201, json={"success": True, "listing": _listing("created")})

    cache, seen = _cache(handler)
    first = asyncio.create_task(cache.create_listing({"title": "Bike"}))
    await asyncio.sleep(0.01)

    second = await cache.create_listing({"title": "Bike"})
    assert not second.ok
    assert second.rejected

    release.set()
    assert (await first).ok
    assert len(seen) == 1
    assert [item["id"] for item in cache.listings] == ["created"]
    assert not cache.is_loading("create")
    assert cache.errors["create"] is None


@pytest.mark.asyncio
async def test_update_replaces_item_in_place():
    async def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json=_page(["a", "b"]))
        return httpx.Response(200, json={"success": True, "listing": _listing("b", price=99)})

    cache, _ = _cache(handler)
    await cache.load_listings()
    await cache.update_listing("b", {"price": 99})
    assert [item["price"] for item in cache.listings] == [10, 99]
    assert not cache.is_loading("update:b")


@pytest.mark.asyncio
async def test_failed_remove_restores_original_position():
    async def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json=_page(["a", "b", "c"]))
        return httpx.Response(403, json={"success": False, "message": "Not authorized to modify this listing"})

    cache, _ = _cache(handler)
    await cache.load_listings()
    result = await cache.remove_listing("b")

    assert not result.ok
    assert [item["id"] for item in cache.listings] == ["a", "b", "c"]
    assert cache.pagination["total"] == 3
    assert cache.errors["delete:b"] == "Not authorized to modify this listing"
    assert not cache.is_loading("delete:b")


@pytest.mark.asyncio
async def test_failed_remove_after_reload_does_not_duplicate():
    release = asyncio.Event()

    async def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json=_page(["a", "b", "c"]))
        await release.wait()
        return httpx.Response(500, json={"success": False, "message": "Server error"})

    cache, _ = _cache(handler)
    await cache.load_listings()
    pending = asyncio.create_task(cache.remove_listing("b"))
    await asyncio.sleep(0.01)
    assert [item["id"] for item in cache.listings] == ["a", "c"]

    # the reload lands while the delete is still pending
    await cache.load_listings()
    release.set()
    result = await pending

    assert not result.ok
    assert [item["id"] for item in cache.listings] == ["a", "b", "c"]
    assert cache.pagination["total"] == 3
    assert cache.errors["delete:b"] == "Server error"
    assert not cache.is_loading("delete:b")


@pytest.mark.asyncio
async def test_remove_is_optimistic():
    release = asyncio.Event()

    async def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json=_page(["a", "b"]))
        await release.wait()
        return httpx.Response(200, json={"success": True, "message": "Listing removed"})

    cache, _ = _cache(handler)
    await cache.load_listings()
    pending = asyncio.create_task(cache.remove_listing("a"))
    await asyncio.sleep(0.01)

    # gone before the server answered
    assert [item["id"] for item in cache.listings] == ["b"]
    assert cache.pagination["total"] == 1

    release.set()
    assert (await pending).ok
    assert [item["id"] for item in cache.listings] == ["b"]


@pytest.mark.asyncio
async def test_failed_favorite_toggle_rolls_back():
    async def handler(request):
        return httpx.Response(500, json={"success": False, "message": "Server error"})

    cache, _ = _cache(handler)
    result = await cache.toggle_favorite("a")
    assert not result.ok
    assert "a" not in cache.favorites

    cache.favorites.add("b")
    await cache.toggle_favorite("b")
    assert "b" in cache.favorites
    assert not cache.is_loading("favorite:a")
    assert not cache.is_loading("favorite:b")


@pytest.mark.asyncio
async def test_favorite_toggle_settles_on_server_state():
    async def handler(request):
        if request.method == "POST":
            return httpx.Response(409, json={"success": False, "message": "Listing already in favorites"})
        return httpx.Response(404, json={"success": False, "message": "Favorite not found"})

    cache, _ = _cache(handler)
    await cache.toggle_favorite("a")
    assert "a" in cache.favorites

    await cache.toggle_favorite("a")
    assert "a" not in cache.favorites


@pytest.mark.asyncio
async def test_client_against_the_app(client, categories):
    # the `client` fixture installs the test database override
    api = MarketplaceClient("http://test", transport=httpx.ASGITransport(app=app))
    try:
        r = await api.register(name="Ruwan", email="ruwan@example.com", password=PASSWORD)
        assert r.ok and api.token

        cache = ListingCache(api)
        created = await cache.create_listing({
            "title": "Canon EOS camera",
            "description": "Camera body with two lenses and a bag.",
            "price": 400,
            "images": ["https://img.example.com/c.jpg"],
            "category": "electronics",
            "location": "Negombo",
            "specifications": {"brand": "Canon"},
        })
        assert created.ok, created.message
        listing_id = created.data["listing"]["id"]

        await cache.load_listings({"category": "electronics"})
        assert [item["id"] for item in cache.listings] == [listing_id]

        await cache.toggle_favorite(listing_id)
        assert listing_id in cache.favorites
        cache.favorites.clear()
        await cache.load_favorites()
        assert cache.favorites == {listing_id}

        removed = await cache.remove_listing(listing_id)
        assert removed.ok
        assert cache.listings == []
        assert cache.favorites == set()

        bad = await api.create_listing({"title": "x"})
        assert bad.status_code == 400
        assert bad.errors
        assert json.dumps(bad.data)
    finally:
        await api.aclose()
