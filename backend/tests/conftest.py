"""Shared test fixtures."""

import pytest

from placemap.models.places_model import PlaceRecord, PointGeometry
from placemap.repos.local_repo import LocalPlacesRepository
from placemap.services.places_service import PlacesService


@pytest.fixture
def place_factory():
    """Build PlaceRecords without touching storage."""
    def _make(place_id="p1", name="Domplatz", lon=11.6566, lat=46.7157, category="Kultur", **properties):
        return PlaceRecord(
            _id=place_id,
            properties={"Name": name, "Beschreibung": f"{name} description", "Kategorie": category, **properties},
            geometry=PointGeometry(coordinates=[lon, lat]),
        )
    return _make


@pytest.fixture
def local_repo(tmp_path):
    return LocalPlacesRepository(tmp_path)


@pytest.fixture
def places_service(local_repo):
    return PlacesService(local_repo)
