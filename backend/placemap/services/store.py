"""
The persistence collaborator as seen by the interaction core.

Calls are fallible and latency-bearing. Failures surface as PlaceMapError
subclasses; anything else is wrapped in PlaceStoreError.
"""
from typing import Optional, Protocol

from placemap.core.errors import PlaceMapError, PlaceStoreError
from placemap.models.places_model import PlaceRecord, PlacesFilter
from placemap.services.places_service import PlacesService


class PlaceStore(Protocol):
    async def fetch_place(self, place_id: str) -> PlaceRecord: ...
    async def save_place(self, record: PlaceRecord) -> PlaceRecord: ...
    async def delete_place(self, place_id: str) -> None: ...
    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceRecord]: ...


class ServicePlaceStore:
    """In-process store backed directly by a PlacesService."""

    def __init__(self, service: PlacesService):
        self.service = service

    async def _call(self, coro):
        try:
            return await coro
        except PlaceMapError:
            raise
        except Exception as e:
            raise PlaceStoreError(str(e)) from e

    async def fetch_place(self, place_id: str) -> PlaceRecord:
        return await self._call(self.service.get_place(place_id))

    async def save_place(self, record: PlaceRecord) -> PlaceRecord:
        return await self._call(self.service.save_place(record))

    async def delete_place(self, place_id: str) -> None:
        await self._call(self.service.delete_place(place_id))

    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceRecord]:
        return await self._call(self.service.list_places(places_filter))
