import httpx
import logging
from typing import Optional

from placemap.core.config import settings
from placemap.core.errors import PlaceNotFoundError, PlaceStoreError, PlaceValidationError
from placemap.core.logger import logs
from placemap.models.places_model import CategoryCount, PlaceRecord, PlacesFilter, PlaceView


class PlacesApiClient:
    """
    PlaceStore implementation that talks to the places HTTP API.
    Used by the interaction core when it runs apart from the backend process.
    """

    def __init__(self, base_url: str = None, timeout: float = None, transport: httpx.AsyncBaseTransport = None):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _request(self, method: str, path: str, place_id: str = None, **kwargs) -> httpx.Response:
        async with self._client() as client:
            try:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status == 404 and place_id is not None:
                    raise PlaceNotFoundError(place_id) from e
                if status in (400, 422):
                    raise PlaceValidationError(e.response.text) from e
                logs.log(logging.ERROR, f"Places API {method} {path} failed with {status}")
                raise PlaceStoreError(f"{method} {path} returned {status}") from e
            except httpx.HTTPError as e:
                logs.log(logging.ERROR, f"Places API {method} {path} unreachable: {str(e)}")
                raise PlaceStoreError(f"{method} {path} failed: {e}") from e

    async def fetch_place(self, place_id: str) -> PlaceView:
        response = await self._request("GET", f"/places/{place_id}", place_id=place_id)
        return PlaceView.model_validate(response.json())

    async def save_place(self, record: PlaceRecord) -> PlaceView:
        body = {
            "type": "Feature",
            "properties": record.properties,
            "geometry": record.geometry.model_dump(),
        }
        if record.id is None:
            response = await self._request("POST", "/places", json=body)
        else:
            response = await self._request("PUT", f"/places/{record.id}", place_id=record.id, json=body)
        return PlaceView.model_validate(response.json())

    async def delete_place(self, place_id: str) -> None:
        await self._request("DELETE", f"/places/{place_id}", place_id=place_id)

    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceView]:
        params = places_filter.model_dump(exclude_none=True) if places_filter else {}
        response = await self._request("GET", "/places", params=params)
        return [PlaceView.model_validate(f) for f in response.json().get("features", [])]

    async def category_counts(self) -> list[CategoryCount]:
        response = await self._request("GET", "/places/categories")
        return [CategoryCount(**c) for c in response.json().get("categories", [])]
