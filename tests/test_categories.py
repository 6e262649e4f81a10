import pytest

from marketplace.services.categories import DEFAULT_CATEGORIES
from tests.fixtures_seed import auth


@pytest.mark.asyncio
async def test_list_is_one_level_deep(client, categories):
    r = await client.get("/api/categories", params={"parentOnly": "true"})
    body = r.json()
    by_slug = {c["slug"]: c for c in body["categories"]}
    assert "laptops" not in by_slug
    assert {s["slug"] for s in by_slug["electronics"]["subcategories"]} == {"laptops", "smartphones"}
    assert by_slug["fashion"]["subcategories"] == []

    r = await client.get("/api/categories")
    assert r.json()["count"] == len(DEFAULT_CATEGORIES)


@pytest.mark.asyncio
async def test_get_by_slug_and_id_returns_parent(client, categories):
    r = await client.get("/api/categories/laptops")
    assert r.status_code == 200
    assert r.json()["parent"]["slug"] == "electronics"

    r = await client.get(f"/api/categories/{categories['electronics']}")
    assert r.json()["category"]["slug"] == "electronics"
    assert r.json()["parent"] is None

    r = await client.get("/api/categories/unknown")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_create_requires_admin(client, seller, admin):
    r = await client.post("/api/categories", json={"name": "Books"}, headers=auth(seller["token"]))
    assert r.status_code == 403

    r = await client.post("/api/categories", json={"name": "Books & Comics"}, headers=auth(admin["token"]))
    assert r.status_code == 201
    category = r.json()["category"]
    assert category["slug"] == "books-comics"
    assert category["icon"] == "📦"


@pytest.mark.asyncio
async def test_duplicate_name_is_409(client, admin, categories):
    r = await client.post("/api/categories", json={"name": "electronics"}, headers=auth(admin["token"]))
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_unknown_parent_is_400(client, admin, categories):
    r = await client.post(
        "/api/categories",
        json={"name": "Tablets", "parent": "cat_00000000000000000000000000000000"},
        headers=auth(admin["token"]),
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_update_rejects_self_parent(client, admin, categories):
    cid = categories["fashion"]
    r = await client.put(f"/api/categories/{cid}", json={"parent": cid}, headers=auth(admin["token"]))
    assert r.status_code == 400

    r = await client.put(
        f"/api/categories/{cid}",
        json={"name": "Clothing", "parent": categories["collectibles"]},
        headers=auth(admin["token"]),
    )
    assert r.status_code == 200
    assert r.json()["category"]["slug"] == "clothing"
    assert r.json()["category"]["parent_id"] == categories["collectibles"]

    # explicit null moves it back to the top level
    r = await client.put(f"/api/categories/{cid}", json={"parent": None}, headers=auth(admin["token"]))
    assert r.json()["category"]["parent_id"] is None


@pytest.mark.asyncio
async def test_delete_blocked_by_children_and_listings(client, admin, seller, categories, make_listing):
    r = await client.delete(f"/api/categories/{categories['electronics']}", headers=auth(admin["token"]))
    assert r.status_code == 409

    await make_listing(seller, category="fashion")
    r = await client.delete(f"/api/categories/{categories['fashion']}", headers=auth(admin["token"]))
    assert r.status_code == 409

    r = await client.delete(f"/api/categories/{categories['collectibles']}", headers=auth(admin["token"]))
    assert r.status_code == 200
    r = await client.get("/api/categories/collectibles")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_init_is_idempotent(client, admin):
    r = await client.post("/api/categories/init", headers=auth(admin["token"]))
    assert r.json()["created"] == len(DEFAULT_CATEGORIES)

    r = await client.post("/api/categories/init", headers=auth(admin["token"]))
    assert r.json()["created"] == 0


@pytest.mark.asyncio
async def test_fields_endpoint_uses_parent_schema(client, categories):
    r = await client.get("/api/categories/cars/fields")
    body = r.json()
    assert body["category"] == "cars"
    required = {f["name"] for f in body["fields"] if f["required"]}
    assert required == {"brand", "model", "year"}

    r = await client.get("/api/categories/collectibles/fields")
    assert r.json()["fields"] == []
