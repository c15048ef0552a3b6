"""HTTP tests for the places and maintenance routers."""

import json

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from placemap.main import app
from placemap.routes.dependencies import get_places_service
from placemap.services.places_service import PlacesService


@pytest.fixture
def client(places_service):
    app.dependency_overrides[get_places_service] = lambda: places_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(local_repo):
    local_repo.places_file.write_text(json.dumps([
        {
            "_id": "a",
            "type": "Feature",
            "properties": {"Name": "Domplatz", "Beschreibung": "", "Kategorie": "Kultur"},
            "geometry": {"type": "Point", "coordinates": [11.6566, 46.7157]},
        },
        {
            "_id": "b",
            "type": "Feature",
            "properties": {"Name": "Hofburg", "Beschreibung": "", "Kategorie": "Kultur", "Koordinate N": "46.72"},
            "geometry": {"type": "Point", "coordinates": [116.60, 46.72]},
        },
    ]), encoding="utf-8")
    return local_repo


NEW_PLACE = {
    "type": "Feature",
    "properties": {"Name": "Neu", "Beschreibung": "Test", "Kategorie": "Essen"},
    "geometry": {"type": "Point", "coordinates": [11.66, 4.672]},
}


class TestRoot:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_root_lists_endpoints(self, client):
        assert "places" in client.get("/").json()["endpoints"]


class TestPlacesRoutes:
    def test_list_returns_feature_collection(self, client, seeded):
        response = client.get("/places")
        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "FeatureCollection"
        by_id = {f["_id"]: f for f in body["features"]}
        assert by_id["b"]["geometry"]["coordinates"][0] == pytest.approx(11.66)
        assert by_id["b"]["geometry_status"] == "CORRECTED_AXIS"

    def test_list_with_filters(self, client, seeded):
        response = client.get("/places", params={"category": "Kultur", "search": "hof"})
        assert [f["_id"] for f in response.json()["features"]] == ["b"]

    def test_categories_route_is_not_a_place_id(self, client, seeded):
        response = client.get("/places/categories")
        assert response.status_code == 200
        assert response.json() == {"categories": [{"category": "Kultur", "count": 2}]}

    def test_get_place(self, client, seeded):
        response = client.get("/places/a")
        assert response.status_code == 200
        assert response.json()["properties"]["Name"] == "Domplatz"

    def test_get_missing_place(self, client, seeded):
        assert client.get("/places/zzz").status_code == 404

    def test_create_place(self, client):
        response = client.post("/places", json=NEW_PLACE)
        assert response.status_code == 200
        body = response.json()
        assert body["_id"]
        assert body["geometry"]["coordinates"][1] == pytest.approx(46.72)

    def test_create_with_missing_fields(self, client):
        payload = {**NEW_PLACE, "properties": {"Name": "Neu"}}
        response = client.post("/places", json=payload)
        assert response.status_code == 400
        assert "Kategorie" in response.json()["detail"]

    @pytest.mark.parametrize("geometry", [
        {"type": "Point", "coordinates": [11.66]},
        {"type": "LineString", "coordinates": [11.66, 46.72]},
        {"type": "Point", "coordinates": ["11.66", "46.72"]},
    ])
    def test_create_with_malformed_geometry(self, client, geometry):
        response = client.post("/places", json={**NEW_PLACE, "geometry": geometry})
        assert response.status_code == 400
        assert client.get("/places").json()["features"] == []

    def test_update_with_malformed_geometry(self, client, seeded):
        response = client.put("/places/a", json={"geometry": {"type": "LineString", "coordinates": [11.66, 46.72]}})
        assert response.status_code == 400
        assert client.get("/places/a").json()["geometry"]["type"] == "Point"

    def test_update_place(self, client, seeded):
        response = client.put("/places/a", json={"properties": {"Name": "Domplatz Brixen", "Beschreibung": "", "Kategorie": "Kultur"}})
        assert response.status_code == 200
        assert response.json()["properties"]["Name"] == "Domplatz Brixen"

    def test_update_missing_place(self, client, seeded):
        assert client.put("/places/zzz", json={"properties": {"Name": "x"}}).status_code == 404

    def test_delete_place(self, client, seeded):
        assert client.delete("/places/a").status_code == 204
        assert client.delete("/places/a").status_code == 404

    def test_backend_failure_is_500(self, client):
        broken = AsyncMock(spec=PlacesService)
        broken.list_places.side_effect = RuntimeError("db down")
        app.dependency_overrides[get_places_service] = lambda: broken
        response = client.get("/places")
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to load places"


class TestMaintenanceRoutes:
    def test_cleanup(self, client, seeded):
        response = client.post("/maintenance/cleanup-coordinates")
        assert response.status_code == 200
        assert response.json() == {"success": True, "documents_found": 1, "documents_modified": 1}

    def test_reconcile_dry_run(self, client, seeded):
        response = client.post("/maintenance/reconcile-coordinates", params={"dry_run": "true"})
        body = response.json()
        assert body["dry_run"] is True
        assert body["corrected"] == 1
        assert body["total"] == 2
