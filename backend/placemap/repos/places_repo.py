import re
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError
import logging

from placemap.core.config import settings
from placemap.core.logger import logs
from placemap.models.places_model import (
    LEGACY_COORDINATE_FIELDS,
    SEARCHABLE_FIELDS,
    CategoryCount,
    PlaceRecord,
    PlacesFilter,
)


def build_filter_query(places_filter: Optional[PlacesFilter]) -> dict:
    """
    Translate a PlacesFilter into a Mongo query.
    Category "all" means no category restriction; search is case-insensitive
    across the German and Italian name/description fields.
    """
    query: dict = {}
    if places_filter is None:
        return query

    if places_filter.category and places_filter.category != "all":
        query["properties.Kategorie"] = places_filter.category

    if places_filter.search:
        pattern = re.escape(places_filter.search)
        query["$or"] = [
            {f"properties.{field}": {"$regex": pattern, "$options": "i"}}
            for field in SEARCHABLE_FIELDS
        ]
    return query


def document_to_record(doc: dict) -> PlaceRecord:
    """
    Convert a stored document into a PlaceRecord.
    Documents without a usable point geometry load with a [0, 0] placeholder
    and `geometry_unusable` set, so they are flagged for manual correction
    and maintenance never overwrites what is stored.
    """
    doc = dict(doc)
    doc["_id"] = str(doc["_id"]) if doc.get("_id") is not None else None
    doc.setdefault("properties", {})
    try:
        return PlaceRecord.model_validate(doc)
    except ValidationError as e:
        logs.log(
            logging.WARNING,
            f"Place {doc.get('_id')} has an unusable geometry",
            extra={"geometry": doc.get("geometry"), "error": str(e)},
        )
        doc["geometry"] = {"type": "Point", "coordinates": [0.0, 0.0]}
        doc["geometry_unusable"] = True
        return PlaceRecord.model_validate(doc)


class PlacesRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[settings.MONGO_COLLECTION]

    async def _find_by_id(self, place_id: str) -> dict | None:
        # Ids are normally ObjectIds, but imported documents may carry plain strings
        if ObjectId.is_valid(place_id):
            doc = await self.collection.find_one({"_id": ObjectId(place_id)})
            if doc is not None:
                return doc
        return await self.collection.find_one({"_id": place_id})

    async def _id_query(self, place_id: str) -> dict:
        if ObjectId.is_valid(place_id):
            oid = ObjectId(place_id)
            if await self.collection.count_documents({"_id": oid}, limit=1):
                return {"_id": oid}
        return {"_id": place_id}

    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceRecord]:
        cursor = self.collection.find(build_filter_query(places_filter))
        docs = await cursor.to_list(length=None)
        return [document_to_record(doc) for doc in docs]

    async def get_place(self, place_id: str) -> PlaceRecord | None:
        doc = await self._find_by_id(place_id)
        return document_to_record(doc) if doc is not None else None

    async def create_place(self, record: PlaceRecord) -> PlaceRecord:
        result = await self.collection.insert_one(record.to_document())
        return record.model_copy(update={"id": str(result.inserted_id)})

    async def update_place(self, place_id: str, record: PlaceRecord) -> PlaceRecord | None:
        """Overwrites type/properties/geometry. Returns None if the place does not exist."""
        result = await self.collection.update_one(
            await self._id_query(place_id),
            {"$set": record.to_document()}
        )
        if result.matched_count == 0:
            return None
        return record.model_copy(update={"id": place_id})

    async def replace_geometry(self, place_id: str, geometry: dict) -> bool:
        result = await self.collection.update_one(
            await self._id_query(place_id),
            {"$set": {"geometry": geometry}}
        )
        return result.matched_count > 0

    async def delete_place(self, place_id: str) -> bool:
        result = await self.collection.delete_one(await self._id_query(place_id))
        return result.deleted_count > 0

    async def category_counts(self) -> list[CategoryCount]:
        """Number of places per category, empty categories ignored, sorted by name."""
        pipeline = [
            {"$match": {"properties.Kategorie": {"$exists": True, "$ne": ""}}},
            {"$group": {"_id": "$properties.Kategorie", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
            {"$project": {"category": "$_id", "count": 1, "_id": 0}},
        ]
        rows = await self.collection.aggregate(pipeline).to_list(length=None)
        return [CategoryCount(**row) for row in rows]

    async def remove_legacy_coordinate_fields(self) -> tuple[int, int]:
        """
        Drops the redundant coordinate copies from all documents.
        Returns (documents found, documents modified).
        """
        query = {"$or": [{f"properties.{field}": {"$exists": True}} for field in LEGACY_COORDINATE_FIELDS]}
        found = await self.collection.count_documents(query)
        result = await self.collection.update_many(
            query,
            {"$unset": {f"properties.{field}": "" for field in LEGACY_COORDINATE_FIELDS}}
        )
        return found, result.modified_count
