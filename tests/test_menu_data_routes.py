from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from menu_cache.deps import get_menu_service
from menu_cache.middleware.observability import ObservabilityMiddleware
from menu_cache.routers.internal_metrics import router as internal_metrics_router
from menu_cache.routers.manual_submission import router as manual_submission_router
from menu_cache.routers.menu_data import router as menu_data_router
from tests.fixtures_data import MANUAL_ITEMS, URL_A, CountingFetcher, FakeClock, build_service


def _build_client(fetcher: CountingFetcher | None = None, clock: FakeClock | None = None) -> TestClient:
    service = build_service(fetcher or CountingFetcher(), clock=clock or FakeClock())

    app = FastAPI()
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(menu_data_router)
    app.include_router(manual_submission_router)
    app.include_router(internal_metrics_router)
    app.dependency_overrides[get_menu_service] = lambda: service

    return TestClient(app)


def test_get_unknown_tenant_returns_404() -> None:
    client = _build_client()

    response = client.get("/api/tenants/nobody/menu-data")

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "Failed to retrieve menu data"
    assert "nobody" in response.json()["detail"]["details"]


def test_post_fetches_then_serves_cached_copy() -> None:
    fetcher = CountingFetcher()
    client = _build_client(fetcher)

    first = client.post("/api/tenants/t1/menu-data", json={"url": URL_A})
    second = client.post("/api/tenants/t1/menu-data", json={"url": URL_A})

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["cached"] is False
    assert body["metadata"]["itemsScraped"] == 5
    assert body["menuData"]["dataSource"] == "scraped"
    assert body["menuData"]["items"][0]["name"] == "Margherita"
    assert second.status_code == 200
    assert second.json()["cached"] is True
    assert fetcher.calls == 1


def test_post_force_refresh_flag_is_camel_case() -> None:
    fetcher = CountingFetcher()
    client = _build_client(fetcher)
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})

    response = client.post("/api/tenants/t1/menu-data", json={"url": URL_A, "forceRefresh": True})

    assert response.json()["cached"] is False
    assert len(response.json()["menuData"]["scrapingHistory"]) == 2
    assert fetcher.calls == 2


def test_post_without_url_is_bad_request() -> None:
    client = _build_client()

    missing = client.post("/api/tenants/t1/menu-data", json={})
    invalid = client.post("/api/tenants/t1/menu-data", json={"url": "nope"})

    assert missing.status_code == 400
    assert missing.json()["detail"]["details"] == "URL is required"
    assert invalid.status_code == 400
    assert invalid.json()["detail"]["details"] == "Invalid URL format"


def test_post_failure_without_fallback_is_bad_gateway() -> None:
    fetcher = CountingFetcher()
    fetcher.fail_with = "upstream down"
    client = _build_client(fetcher)

    response = client.post("/api/tenants/t1/menu-data", json={"url": URL_A})

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["fallbackAvailable"] is False
    assert detail["details"] == "upstream down"


def test_post_failure_with_fallback_serves_last_known_good() -> None:
    fetcher = CountingFetcher()
    client = _build_client(fetcher)
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})
    fetcher.fail_with = "upstream down"

    response = client.post("/api/tenants/t1/menu-data", json={"url": URL_A, "forceRefresh": True})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert body["fallbackAvailable"] is True
    assert body["isStale"] is True
    assert len(body["menuData"]["items"]) == 5
    history = body["menuData"]["scrapingHistory"]
    assert [entry["success"] for entry in history] == [False, True]
    assert history[0]["error"] == "upstream down"


def test_get_reports_staleness_against_max_age() -> None:
    clock = FakeClock()
    client = _build_client(clock=clock)
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})
    clock.advance(hours=3)

    fresh = client.get("/api/tenants/t1/menu-data")
    stale = client.get("/api/tenants/t1/menu-data", params={"maxAge": 1})

    assert fresh.json()["isStale"] is False
    assert stale.json()["isStale"] is True
    assert stale.json()["menuData"]["isStale"] is True
    metadata = stale.json()["metadata"]
    assert metadata == {
        "itemCount": 5,
        "lastScraped": "2024-05-01T12:00:00+00:00",
        "ageDescription": "3 hours",
        "source": URL_A,
        "historyLength": 1,
    }


def test_put_merges_and_marks_manual() -> None:
    clock = FakeClock()
    client = _build_client(clock=clock)
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})
    clock.advance(days=3)

    response = client.put(
        "/api/tenants/t1/menu-data",
        json={"restaurantName": "New Name", "specialOffers": ["Two for one"]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["isStale"] is False
    assert body["menuData"]["restaurantName"] == "New Name"
    assert body["menuData"]["dataSource"] == "manual"
    assert body["menuData"]["specialOffers"] == ["Two for one"]
    assert len(body["menuData"]["items"]) == 5


def test_put_unknown_tenant_and_unknown_field() -> None:
    client = _build_client()

    missing = client.put("/api/tenants/nobody/menu-data", json={"cuisine": "Thai"})
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})
    bad_field = client.put("/api/tenants/t1/menu-data", json={"lastScraped": None})

    assert missing.status_code == 404
    assert bad_field.status_code == 400


def test_put_with_non_list_items_is_bad_request() -> None:
    client = _build_client()
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})

    items = client.put("/api/tenants/t1/menu-data", json={"items": 5})
    offers = client.put("/api/tenants/t1/menu-data", json={"specialOffers": 5})

    assert items.status_code == 400
    assert offers.status_code == 400
    assert len(client.get("/api/tenants/t1/menu-data").json()["menuData"]["items"]) == 5


def test_delete_then_get_returns_404() -> None:
    client = _build_client()
    client.post("/api/tenants/t1/menu-data", json={"url": URL_A})

    deleted = client.delete("/api/tenants/t1/menu-data")
    again = client.delete("/api/tenants/t1/menu-data")
    fetched = client.get("/api/tenants/t1/menu-data")

    assert deleted.status_code == 200
    assert deleted.json()["success"] is True
    assert again.status_code == 404
    assert fetched.status_code == 404


def test_manual_submission_flow() -> None:
    client = _build_client()

    created = client.post(
        "/api/tenants/manual-menu-submission",
        json={"tenantId": "t7", "submissionType": "manual-entry", "menuItems": MANUAL_ITEMS},
    )
    duplicate = client.post(
        "/api/tenants/manual-menu-submission",
        json={"tenantId": "t7", "submissionType": "manual-entry", "menuItems": MANUAL_ITEMS},
    )

    assert created.status_code == 200
    body = created.json()
    assert body["itemsAdded"] == 3
    assert body["message"] == "Successfully added 3 menu items. Your menu is now active!"
    assert duplicate.status_code == 409

    by_id = client.get("/api/tenants/manual-menu-submission", params={"submissionId": body["submissionId"]})
    by_tenant = client.get("/api/tenants/manual-menu-submission", params={"tenantId": "t7"})
    menu = client.get("/api/tenants/t7/menu-data")

    assert by_id.json()["submission"]["status"] == "completed"
    assert by_id.json()["submission"]["processingFee"] == 0.0
    assert [sub["id"] for sub in by_tenant.json()["submissions"]] == [body["submissionId"]]
    assert menu.json()["menuData"]["source"] == "manual-entry"
    assert menu.json()["menuData"]["restaurantName"] == "Restaurant t7"


def test_manual_submission_validation() -> None:
    client = _build_client()

    missing_items = client.post("/api/tenants/manual-menu-submission", json={"tenantId": "t7"})
    nameless = client.post(
        "/api/tenants/manual-menu-submission",
        json={"tenantId": "t7", "menuItems": [{"name": ""}]},
    )
    upload = client.post(
        "/api/tenants/manual-menu-submission",
        json={"tenantId": "t7", "submissionType": "file-upload", "menuItems": MANUAL_ITEMS},
    )
    unknown = client.get("/api/tenants/manual-menu-submission", params={"submissionId": "manual-0"})
    no_params = client.get("/api/tenants/manual-menu-submission")

    assert missing_items.status_code == 400
    assert nameless.status_code == 400
    assert nameless.json()["detail"]["details"] == "No valid menu items provided"
    assert upload.status_code == 400
    assert unknown.status_code == 404
    assert no_params.status_code == 400


def test_metrics_and_request_id_header() -> None:
    client = _build_client()

    response = client.get("/api/tenants/metrics-tenant/menu-data", headers={"X-Request-ID": "req-123"})
    tenants = client.get("/internal/metrics/tenants").json()["tenants"]
    refresh = client.get("/internal/metrics/refresh")

    assert response.headers["X-Request-ID"] == "req-123"
    assert tenants["metrics-tenant"]["requests"] >= 1
    assert tenants["metrics-tenant"]["errors"] >= 1
    assert refresh.status_code == 200
    assert "GET /api/tenants/{tenant_id}/menu-data" in refresh.json()["endpoints"]
