"""Tests for the HTTP PlaceStore client."""

import httpx
import pytest

from placemap.client.places_client import PlacesApiClient
from placemap.core.errors import PlaceNotFoundError, PlaceStoreError, PlaceValidationError
from placemap.main import app
from placemap.models.places_model import PlacesFilter
from placemap.routes.dependencies import get_places_service

FEATURE = {
    "_id": "a",
    "type": "Feature",
    "properties": {"Name": "Domplatz", "Beschreibung": "", "Kategorie": "Kultur"},
    "geometry": {"type": "Point", "coordinates": [11.6566, 46.7157]},
}


def client_for(handler):
    return PlacesApiClient(base_url="http://places.test", transport=httpx.MockTransport(handler))


class TestPlacesApiClient:
    @pytest.mark.asyncio
    async def test_fetch_place(self):
        def handler(request):
            assert request.url.path == "/places/a"
            return httpx.Response(200, json=FEATURE)

        place = await client_for(handler).fetch_place("a")
        assert place.id == "a"
        assert place.name == "Domplatz"

    @pytest.mark.asyncio
    async def test_fetch_missing_place(self):
        client = client_for(lambda request: httpx.Response(404, json={"detail": "Place not found: a"}))
        with pytest.raises(PlaceNotFoundError):
            await client.fetch_place("a")

    @pytest.mark.asyncio
    async def test_save_new_place_posts(self, place_factory):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=FEATURE)

        await client_for(handler).save_place(place_factory(place_id=None))
        assert seen == [("POST", "/places")]

    @pytest.mark.asyncio
    async def test_save_existing_place_puts(self, place_factory):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=FEATURE)

        await client_for(handler).save_place(place_factory(place_id="a"))
        assert seen == [("PUT", "/places/a")]

    @pytest.mark.asyncio
    async def test_validation_error(self, place_factory):
        client = client_for(lambda request: httpx.Response(400, json={"detail": "Missing required fields: Name"}))
        with pytest.raises(PlaceValidationError):
            await client.save_place(place_factory(place_id=None))

    @pytest.mark.asyncio
    async def test_server_error_is_store_error(self):
        client = client_for(lambda request: httpx.Response(500, json={"detail": "boom"}))
        with pytest.raises(PlaceStoreError):
            await client.list_places()

    @pytest.mark.asyncio
    async def test_network_error_is_store_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(PlaceStoreError):
            await client_for(handler).delete_place("a")

    @pytest.mark.asyncio
    async def test_list_sends_filter(self):
        def handler(request):
            assert dict(request.url.params) == {"category": "Kultur"}
            return httpx.Response(200, json={"type": "FeatureCollection", "features": [FEATURE]})

        places = await client_for(handler).list_places(PlacesFilter(category="Kultur"))
        assert [p.id for p in places] == ["a"]

    @pytest.mark.asyncio
    async def test_category_counts(self):
        client = client_for(lambda request: httpx.Response(200, json={"categories": [{"category": "Kultur", "count": 2}]}))
        counts = await client.category_counts()
        assert counts[0].count == 2


@pytest.mark.asyncio
async def test_against_running_app(places_service, place_factory):
    app.dependency_overrides[get_places_service] = lambda: places_service
    try:
        client = PlacesApiClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))

        saved = await client.save_place(place_factory(place_id=None, lon=116.566, lat=46.7157))
        assert saved.point.longitude == pytest.approx(11.6566)

        fetched = await client.fetch_place(saved.id)
        assert fetched.name == "Domplatz"

        await client.delete_place(saved.id)
        with pytest.raises(PlaceNotFoundError):
            await client.fetch_place(saved.id)
    finally:
        app.dependency_overrides.clear()
