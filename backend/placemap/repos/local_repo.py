"""
Local file-based places repository.
Uses a single JSON file instead of MongoDB (STORAGE_MODE=local).
"""
import json
from collections import Counter
from pathlib import Path
from typing import Optional

from bson import ObjectId

from placemap.core.config import settings
from placemap.core.errors import PlaceStoreError
from placemap.core.logger import logs
from placemap.models.places_model import (
    LEGACY_COORDINATE_FIELDS,
    SEARCHABLE_FIELDS,
    CategoryCount,
    PlaceRecord,
    PlacesFilter,
)
from placemap.repos.places_repo import document_to_record
import logging


def _matches(doc: dict, places_filter: Optional[PlacesFilter]) -> bool:
    if places_filter is None:
        return True
    properties = doc.get("properties") or {}

    if places_filter.category and places_filter.category != "all":
        if properties.get("Kategorie") != places_filter.category:
            return False

    if places_filter.search:
        needle = places_filter.search.lower()
        if not any(needle in str(properties.get(field) or "").lower() for field in SEARCHABLE_FIELDS):
            return False
    return True


class LocalPlacesRepository:
    """Repository for storing places in a local JSON file."""

    def __init__(self, base_dir: Path | str | None = None):
        self.base_dir = Path(base_dir or settings.LOCAL_DATA_DIR)
        self.places_file = self.base_dir / "places.json"
        self.base_dir.mkdir(parents=True, exist_ok=True)

        logs.log(logging.DEBUG, f"Local places repository at {self.places_file}")

    def _load(self) -> list[dict]:
        if not self.places_file.exists():
            return []
        try:
            with open(self.places_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logs.log(logging.ERROR, f"Failed to read places file: {str(e)}")
            raise PlaceStoreError(f"Failed to read places file: {e}") from e

    def _save(self, docs: list[dict]):
        try:
            with open(self.places_file, "w", encoding="utf-8") as f:
                json.dump(docs, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logs.log(logging.ERROR, f"Failed to write places file: {str(e)}")
            raise PlaceStoreError(f"Failed to write places file: {e}") from e

    @staticmethod
    def _index_of(docs: list[dict], place_id: str) -> int | None:
        for i, doc in enumerate(docs):
            if str(doc.get("_id")) == place_id:
                return i
        return None

    # ===== Places =====

    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceRecord]:
        return [document_to_record(doc) for doc in self._load() if _matches(doc, places_filter)]

    async def get_place(self, place_id: str) -> PlaceRecord | None:
        docs = self._load()
        index = self._index_of(docs, place_id)
        return document_to_record(docs[index]) if index is not None else None

    async def create_place(self, record: PlaceRecord) -> PlaceRecord:
        docs = self._load()
        place_id = record.id or str(ObjectId())
        docs.append({"_id": place_id, **record.to_document()})
        self._save(docs)
        return record.model_copy(update={"id": place_id})

    async def update_place(self, place_id: str, record: PlaceRecord) -> PlaceRecord | None:
        docs = self._load()
        index = self._index_of(docs, place_id)
        if index is None:
            return None
        docs[index] = {**docs[index], **record.to_document()}
        self._save(docs)
        return record.model_copy(update={"id": place_id})

    async def replace_geometry(self, place_id: str, geometry: dict) -> bool:
        docs = self._load()
        index = self._index_of(docs, place_id)
        if index is None:
            return False
        docs[index]["geometry"] = geometry
        self._save(docs)
        return True

    async def delete_place(self, place_id: str) -> bool:
        docs = self._load()
        index = self._index_of(docs, place_id)
        if index is None:
            return False
        del docs[index]
        self._save(docs)
        return True

    async def category_counts(self) -> list[CategoryCount]:
        counts = Counter(
            (doc.get("properties") or {}).get("Kategorie")
            for doc in self._load()
        )
        return [
            CategoryCount(category=category, count=count)
            for category, count in sorted((c, n) for c, n in counts.items() if c)
        ]

    async def remove_legacy_coordinate_fields(self) -> tuple[int, int]:
        docs = self._load()
        modified = 0
        for doc in docs:
            properties = doc.get("properties") or {}
            if any(field in properties for field in LEGACY_COORDINATE_FIELDS):
                for field in LEGACY_COORDINATE_FIELDS:
                    properties.pop(field, None)
                modified += 1
        if modified:
            self._save(docs)
        return modified, modified
