import logging
from collections import Counter
from typing import Optional, Protocol

from placemap.core.config import settings
from placemap.core.errors import PlaceNotFoundError, PlaceValidationError
from placemap.core.logger import logs
from placemap.models.coordinates_model import ReconcileOutcome
from placemap.models.places_model import (
    REQUIRED_FIELDS,
    CategoryCount,
    CleanupReport,
    PlaceCreate,
    PlaceRecord,
    PlacesFilter,
    PlaceUpdate,
    PlaceView,
    PointGeometry,
    ReconcileSummary,
)
from placemap.services.coordinates import reconcile_geometry, reconcile_place


class PlacesRepo(Protocol):
    """What the service needs from a storage backend (Mongo or local file)."""

    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceRecord]: ...
    async def get_place(self, place_id: str) -> PlaceRecord | None: ...
    async def create_place(self, record: PlaceRecord) -> PlaceRecord: ...
    async def update_place(self, place_id: str, record: PlaceRecord) -> PlaceRecord | None: ...
    async def replace_geometry(self, place_id: str, geometry: dict) -> bool: ...
    async def delete_place(self, place_id: str) -> bool: ...
    async def category_counts(self) -> list[CategoryCount]: ...
    async def remove_legacy_coordinate_fields(self) -> tuple[int, int]: ...


def to_view(record: PlaceRecord) -> PlaceView:
    """Reconcile a stored place for display, keeping the outcome so the UI can flag it."""
    fixed, report = reconcile_place(record)
    return PlaceView(
        **fixed.model_dump(),
        geometry_status=report.outcome,
        needs_manual_correction=report.needs_manual_correction,
    )


class PlacesService:
    def __init__(self, repo: PlacesRepo):
        self.repo = repo

    async def list_places(self, places_filter: Optional[PlacesFilter] = None) -> list[PlaceView]:
        records = await self.repo.list_places(places_filter)
        views = [to_view(r) for r in records]

        flagged = sum(1 for v in views if v.needs_manual_correction)
        logs.log(logging.INFO, f"Loaded {len(views)} places ({flagged} need manual correction)", extra=places_filter.model_dump() if places_filter else None)
        return views

    async def get_place(self, place_id: str) -> PlaceView:
        record = await self.repo.get_place(place_id)
        if record is None:
            raise PlaceNotFoundError(place_id)
        return to_view(record)

    async def create_place(self, payload: PlaceCreate) -> PlaceView:
        properties = dict(payload.properties)
        missing = [f for f in REQUIRED_FIELDS if not properties.get(f)]
        if missing:
            raise PlaceValidationError(f"Missing required fields: {', '.join(missing)}")

        # Italian fields always exist, even if empty
        properties.setdefault("Nome", "")
        properties.setdefault("Descrizione", "")

        record = PlaceRecord(type="Feature", properties=properties, geometry=self._checked_geometry(payload.geometry))
        record = self._prepare_for_save(record)

        created = await self.repo.create_place(record)
        logs.log(logging.INFO, f"Created place '{created.name}' ({created.id})")
        return to_view(created)

    async def update_place(self, place_id: str, payload: PlaceUpdate) -> PlaceView:
        current = await self.repo.get_place(place_id)
        if current is None:
            raise PlaceNotFoundError(place_id)

        if payload.geometry is not None:
            geometry = self._checked_geometry(payload.geometry)
        elif current.geometry_unusable:
            # writing the placeholder would destroy the stored value
            raise PlaceValidationError(f"Place {place_id} has an unusable stored geometry; send a corrected geometry")
        else:
            geometry = current.geometry

        record = current.model_copy(update={
            "properties": payload.properties if payload.properties is not None else current.properties,
            "geometry": geometry,
            "geometry_unusable": False,
        })
        record = self._prepare_for_save(record)

        updated = await self.repo.update_place(place_id, record)
        if updated is None:
            # deleted between read and write
            raise PlaceNotFoundError(place_id)
        logs.log(logging.INFO, f"Updated place '{updated.name}' ({place_id})")
        return to_view(updated)

    async def save_place(self, record: PlaceRecord) -> PlaceView:
        """Create or update depending on whether the record carries an id."""
        geometry = record.geometry.model_dump()
        if record.id is None:
            return await self.create_place(PlaceCreate(properties=record.properties, geometry=geometry))
        return await self.update_place(record.id, PlaceUpdate(properties=record.properties, geometry=geometry))

    async def delete_place(self, place_id: str):
        deleted = await self.repo.delete_place(place_id)
        if not deleted:
            raise PlaceNotFoundError(place_id)
        logs.log(logging.INFO, f"Deleted place {place_id}")

    async def category_counts(self) -> list[CategoryCount]:
        return await self.repo.category_counts()

    async def cleanup_legacy_coordinates(self) -> CleanupReport:
        found, modified = await self.repo.remove_legacy_coordinate_fields()
        logs.log(logging.INFO, f"Removed legacy coordinate fields: {modified} of {found} documents modified")
        return CleanupReport(documents_found=found, documents_modified=modified)

    async def reconcile_stored_coordinates(self, dry_run: bool = False) -> ReconcileSummary:
        """Maintenance pass: persist the corrected geometry of every stored place."""
        records = await self.repo.list_places()
        outcomes: Counter = Counter()
        unrecoverable: list[str] = []
        corrected = 0

        for record in records:
            fixed, report = reconcile_place(record)
            outcomes[report.outcome.value] += 1

            if report.outcome == ReconcileOutcome.UNRECOVERABLE:
                # the fallback position is a placeholder, not a repair: leave the stored value for a human
                unrecoverable.append(record.id)
                continue
            if not report.changed:
                continue

            corrected += 1
            if not dry_run:
                await self.repo.replace_geometry(record.id, fixed.geometry.model_dump())

        logs.log(
            logging.INFO,
            f"Coordinate reconciliation {'(dry run) ' if dry_run else ''}finished: {corrected} corrected, {len(unrecoverable)} unrecoverable",
            extra=dict(outcomes),
        )
        return ReconcileSummary(
            dry_run=dry_run,
            total=len(records),
            corrected=corrected,
            unrecoverable=unrecoverable,
            outcomes=dict(outcomes),
        )

    @staticmethod
    def _checked_geometry(geometry: dict) -> PointGeometry:
        """Raises GeometryShapeError for anything but a two-number GeoJSON Point."""
        fixed, report = reconcile_geometry(geometry)
        if report.changed:
            logs.log(logging.INFO, f"Submitted geometry {geometry.get('coordinates')} reconciled", extra={"outcome": report.outcome.value})
        return PointGeometry(**fixed)

    def _prepare_for_save(self, record: PlaceRecord) -> PlaceRecord:
        properties = dict(record.properties)
        if not properties.get("Kategorie"):
            properties["Kategorie"] = settings.DEFAULT_CATEGORY
        record = record.model_copy(update={"type": "Feature", "properties": properties})
        fixed, report = reconcile_place(record)
        if report.changed:
            logs.log(logging.INFO, f"Geometry of '{record.name}' reconciled before save", extra={"outcome": report.outcome.value})
        return fixed
