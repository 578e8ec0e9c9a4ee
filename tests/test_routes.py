import orjson
import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from core.container import container
from core.exceptions import ResolverError

from conftest import DAY_MS, FakeClock, FakeResolver, make_settings

RESOLVE_BODY = {
    "dtcCode": "P0171",
    "vehicleBrand": "VW",
    "vehicleModel": "Golf",
    "vehicleYear": 2019,
    "problemDescription": "System too lean (bank 1)",
}


@pytest.fixture
def app_clock():
    return FakeClock()


@pytest.fixture
def app_resolver(solution):
    return FakeResolver(solution=solution)


@pytest.fixture
def client(tmp_path, app_clock, app_resolver):
    container.settings.override(providers.Object(make_settings(tmp_path, "app.db")))
    container.clock.override(providers.Object(app_clock))
    container.resolver.override(providers.Object(app_resolver))
    container.reset_singletons()

    from main import app

    with TestClient(app) as test_client:
        yield test_client

    container.reset_singletons()
    container.resolver.reset_override()
    container.clock.reset_override()
    container.settings.reset_override()


def test_resolve_then_hit(client, app_resolver):
    first = client.post("/api/solutions/resolve", json=RESOLVE_BODY)
    second = client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    assert first.status_code == 200
    assert first.json()["fromCache"] is False
    assert first.json()["cacheKey"] == "p0171-vw-golf-2019"
    assert second.json()["fromCache"] is True
    assert second.json()["solution"]["title"] == "Replace upstream oxygen sensor"
    assert len(app_resolver.calls) == 1


def test_resolve_force_refresh(client, app_resolver):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    response = client.post("/api/solutions/resolve", json={**RESOLVE_BODY, "forceRefresh": True})

    assert response.json()["fromCache"] is False
    assert len(app_resolver.calls) == 2
    assert app_resolver.calls[1].dtc_code == "P0171"


def test_resolver_failure_is_bad_gateway(client, app_resolver):
    app_resolver.error = ResolverError("Firecrawl not configured", status=500)

    response = client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Firecrawl not configured"}


def test_resolve_validates_body(client):
    response = client.post("/api/solutions/resolve", json={"dtcCode": "P0171"})

    assert response.status_code == 422


def test_cache_key_route(client):
    response = client.get("/api/solutions/key", params={
        "dtcCode": " p0300 ",
        "vehicleBrand": "HONDA",
        "vehicleModel": "Civic",
        "vehicleYear": 2020,
    })

    assert response.json() == {"cacheKey": "p0300-honda-civic-2020"}


def test_stats_include_counters(client):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    data = client.get("/api/cache/stats").json()["data"]

    assert data["totalEntries"] == 1
    assert data["expiredEntries"] == 0
    assert data["isAlmostFull"] is False
    assert data["totalSize"].endswith("KB")
    assert data["statistics"]["operations"]["hit"] == 1
    assert data["statistics"]["operations"]["miss"] == 1
    assert data["statistics"]["hitRatePercent"] == 50.0


def test_entries_and_delete(client):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    entries = client.get("/api/cache/entries").json()["entries"]
    assert [e["key"] for e in entries] == ["p0171-vw-golf-2019"]

    entry = client.get("/api/cache/entries/p0171-vw-golf-2019").json()["entry"]
    assert entry["faultCode"] == "P0171"
    assert entry["vehicleInfo"] == {"brand": "VW", "model": "Golf", "year": 2019}

    assert client.delete("/api/cache/entries/p0171-vw-golf-2019").json() == {"success": True, "deleted": True}
    assert client.delete("/api/cache/entries/p0171-vw-golf-2019").json() == {"success": True, "deleted": False}

    missing = client.get("/api/cache/entries/p0171-vw-golf-2019")
    assert missing.status_code == 404
    assert missing.json()["success"] is False


def test_clear(client):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    assert client.post("/api/cache/clear").json() == {"success": True, "deleted": 1}
    assert client.get("/api/cache/stats").json()["data"]["totalEntries"] == 0


def test_export_then_import(client):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)

    exported = client.get("/api/cache/export")

    assert exported.headers["content-type"].startswith("application/json")
    assert "attachment" in exported.headers["content-disposition"]
    document = orjson.loads(exported.content)
    assert document["totalEntries"] == 1

    # live entry already present, so nothing is overwritten
    again = client.post("/api/cache/import", content=exported.content)
    assert again.json() == {"success": True, "imported": 0, "skipped": 1}

    client.post("/api/cache/clear")
    restored = client.post("/api/cache/import", content=exported.content)
    assert restored.json() == {"success": True, "imported": 1, "skipped": 0}


def test_malformed_import_is_rejected(client):
    response = client.post("/api/cache/import", content=b"{not json")

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_clean_expired(client, app_clock):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)
    app_clock.advance(31 * DAY_MS)

    assert client.post("/api/cache/clean-expired").json() == {"success": True, "deleted": 1}
    assert client.post("/api/cache/clean-expired").json() == {"success": True, "deleted": 0}


def test_schedule_and_manual_cleanup(client, app_clock):
    client.post("/api/solutions/resolve", json=RESOLVE_BODY)
    app_clock.advance(31 * DAY_MS)

    schedule = client.get("/api/cache/schedule").json()["data"]
    assert schedule["enabled"] is False
    assert schedule["lastCleanup"] is None

    ran = client.post("/api/cache/run-scheduled-cleanup").json()["data"]
    assert ran["deletedCount"] == 1

    schedule = client.get("/api/cache/schedule").json()["data"]
    assert schedule["lastCleanup"]["deletedCount"] == 1


def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "OK"
    assert body["service"] == "solution-cache"
    assert body["cache"] == {"available": True, "totalEntries": 0}
    assert body["scheduledCleanup"] is False
