from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Any, Dict, Optional
from enum import Enum

from placemap.core.config import settings
from placemap.models.coordinates_model import GeographicPoint, ReconcileOutcome
from placemap.models.places_model import PlaceRecord


# --- Enums ---
class InteractionMode(str, Enum):
    BROWSING = "BROWSING"
    VIEWING = "VIEWING"
    EDITING = "EDITING"
    CREATING = "CREATING"
    PICKING = "PICKING"


PANEL_MODES = (InteractionMode.VIEWING, InteractionMode.EDITING, InteractionMode.CREATING)
FORM_MODES = (InteractionMode.EDITING, InteractionMode.CREATING)


class PendingEdits(BaseModel):
    """Unsaved form input for the place being edited or created."""
    model_config = ConfigDict(frozen=True)

    properties: Dict[str, Any] = Field(default_factory=dict)
    geometry: Optional[GeographicPoint] = None

    @property
    def is_empty(self) -> bool:
        return not self.properties and self.geometry is None


class InteractionState(BaseModel):
    """
    Snapshot of the map/UI interaction state.

    Immutable: each transition produces a new instance. The picker, panel and
    edit flags are derived from `mode`, so they can never disagree.
    """
    model_config = ConfigDict(frozen=True)

    mode: InteractionMode = InteractionMode.BROWSING
    resume_to: Optional[InteractionMode] = None  # only set while picking

    place: Optional[PlaceRecord] = None
    selected_place_id: Optional[str] = None
    selected_place_name: str = ""
    pending_edits: PendingEdits = Field(default_factory=PendingEdits)

    last_selected_coordinates: Optional[GeographicPoint] = None
    geometry_outcome: Optional[ReconcileOutcome] = None

    map_zoom_level: float = settings.DEFAULT_ZOOM
    map_center: Optional[GeographicPoint] = None

    debug_mode: bool = settings.DEBUG_MODE
    last_error: Optional[str] = None
    version: int = 0

    @computed_field
    @property
    def picker_mode_active(self) -> bool:
        return self.mode == InteractionMode.PICKING

    @computed_field
    @property
    def detail_panel_open(self) -> bool:
        return self.mode in PANEL_MODES

    @computed_field
    @property
    def edit_mode_active(self) -> bool:
        return self.mode in FORM_MODES

    @computed_field
    @property
    def needs_manual_correction(self) -> bool:
        return self.geometry_outcome == ReconcileOutcome.UNRECOVERABLE

    @property
    def effective_geometry(self) -> Optional[GeographicPoint]:
        """Geometry the form shows: a picked/typed override wins over the stored one."""
        if self.pending_edits.geometry is not None:
            return self.pending_edits.geometry
        if self.place is not None:
            return self.place.point
        return None
