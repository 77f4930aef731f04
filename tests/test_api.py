"""Tests for the HTTP API."""

from fastapi.testclient import TestClient

from product_resolver.api.app import create_app

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def test_health(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_get_product_scores_result(container, generalist, record_factory) -> None:
    generalist.records["5000000000001"] = record_factory(nutriscore_grade="b")
    client = TestClient(create_app(container))

    response = client.get("/products/5000000000001")

    assert response.status_code == 200
    data = response.json()
    assert data["product"]["name"] == "Oat Biscuits"
    assert data["product"]["source"] == "openfoodfacts"
    assert 0 <= data["trust_score"]["total"] <= 100
    assert set(data["trust_score"]["breakdown"]) >= {"body", "planet", "care", "open"}


def test_unknown_product_has_no_score(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/products/5000000000001")

    assert response.status_code == 200
    assert response.json()["product"]["name"] == "Product 5000000000001"
    assert response.json()["trust_score"] is None


def test_offline_miss_is_not_found(container, generalist) -> None:
    client = TestClient(create_app(container))

    response = client.get("/products/5000000000001", params={"offline": "true"})

    assert response.status_code == 404
    assert generalist.calls == []


def test_refresh_rewrites_cache(container, cache, generalist, record_factory) -> None:
    cache.put(record_factory(name="Stale"))
    generalist.records["5000000000001"] = record_factory(name="Fresh")
    client = TestClient(create_app(container))

    response = client.post("/products/5000000000001/refresh")

    assert response.status_code == 200
    assert response.json()["product"]["name"] == "Fresh"
    assert cache.get("5000000000001").name == "Fresh"


def test_blank_barcode_is_bad_request(container, generalist) -> None:
    client = TestClient(create_app(container))

    assert client.get("/products/%20").status_code == 400
    assert client.post("/products/%20/refresh").status_code == 400
    assert generalist.calls == []


def test_admin_requires_token(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/admin/cache").status_code == 401
    assert client.get("/admin/cache", headers={"X-Admin-Token": "nope"}).status_code == 401


def test_admin_cache_routes(container, cache, record_factory) -> None:
    cache.put(record_factory())
    client = TestClient(create_app(container))

    size = client.get("/admin/cache", headers=ADMIN_HEADERS)
    entry = client.get("/admin/cache/5000000000001", headers=ADMIN_HEADERS)
    missing = client.get("/admin/cache/404", headers=ADMIN_HEADERS)
    evicted = client.delete("/admin/cache/5000000000001", headers=ADMIN_HEADERS)

    assert size.json() == {"entries": 1}
    assert entry.status_code == 200
    assert entry.json()["entry"]["record"]["barcode"] == "5000000000001"
    assert missing.status_code == 404
    assert evicted.status_code == 204
    assert cache.size() == 0


def test_lifespan_drains_background(container) -> None:
    with TestClient(create_app(container)) as client:
        assert client.get("/health").status_code == 200

    assert container.background.pending == 0


def test_admin_eviction_covers_every_stored_key(
    container, cache, generalist, record_factory
) -> None:
    generalist.records["0012345678905"] = record_factory(barcode="0012345678905")
    client = TestClient(create_app(container))
    client.get("/products/012345678905")

    response = client.delete("/admin/cache/012345678905", headers=ADMIN_HEADERS)

    assert response.status_code == 204
    assert cache.get("0012345678905") is None
    assert cache.get("012345678905") is None
