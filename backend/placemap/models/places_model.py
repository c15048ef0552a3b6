from pydantic import BaseModel, ConfigDict, Field, field_validator
from numbers import Real
from typing import Any, Dict, List, Literal, Optional

from placemap.models.coordinates_model import GeographicPoint, ReconcileOutcome

# Property keys searched by the free-text filter (German and Italian variants)
SEARCHABLE_FIELDS = ("Name", "Nome", "Beschreibung", "Descrizione")
REQUIRED_FIELDS = ("Name", "Kategorie", "Beschreibung")
# Redundant coordinate copies left over from old spreadsheet imports
LEGACY_COORDINATE_FIELDS = ("Koordinate N", "Koordinate O")


class PointGeometry(BaseModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float]

    @field_validator("coordinates", mode="before")
    @classmethod
    def check_pair(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError("coordinates must be [longitude, latitude]")
        # no coercion of "11.6" or True into floats
        if not all(isinstance(v, Real) and not isinstance(v, bool) for v in value):
            raise ValueError("coordinates must be numbers")
        return value

    @property
    def point(self) -> GeographicPoint:
        return GeographicPoint.from_coordinates(self.coordinates)

    @classmethod
    def from_point(cls, point: GeographicPoint) -> "PointGeometry":
        return cls(coordinates=point.as_coordinates())


class PlaceRecord(BaseModel):
    """A place stored as a GeoJSON Feature. Properties are opaque key/value pairs."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    type: str = "Feature"
    properties: Dict[str, Any] = Field(default_factory=dict)
    geometry: PointGeometry
    # Set when the stored geometry could not be read; never written back
    geometry_unusable: bool = Field(default=False, exclude=True)

    @property
    def name(self) -> str:
        return str(self.properties.get("Name") or "")

    @property
    def category(self) -> str:
        return str(self.properties.get("Kategorie") or "")

    @property
    def point(self) -> GeographicPoint:
        return self.geometry.point

    def to_document(self) -> Dict[str, Any]:
        """Mongo/JSON document without the id."""
        return self.model_dump(exclude={"id"})


class PlaceView(PlaceRecord):
    """A place as served for display: geometry already reconciled."""
    geometry_status: ReconcileOutcome = ReconcileOutcome.UNCHANGED
    needs_manual_correction: bool = False


# --- API Request/Response Models ---
# Geometries arrive raw and are shape-checked by the service (GeometryShapeError -> 400)
class PlaceCreate(BaseModel):
    type: str = "Feature"
    properties: Dict[str, Any]
    geometry: Dict[str, Any]


class PlaceUpdate(BaseModel):
    type: str = "Feature"
    properties: Optional[Dict[str, Any]] = None
    geometry: Optional[Dict[str, Any]] = None


class PlacesFilter(BaseModel):
    category: Optional[str] = None
    search: Optional[str] = None


class PlacesResponse(BaseModel):
    type: str = "FeatureCollection"
    features: List[PlaceView]


class CategoryCount(BaseModel):
    category: str
    count: int


class CategoriesResponse(BaseModel):
    categories: List[CategoryCount]


class CleanupReport(BaseModel):
    success: bool = True
    documents_found: int
    documents_modified: int


class ReconcileSummary(BaseModel):
    dry_run: bool
    total: int
    corrected: int
    unrecoverable: List[str] = []
    outcomes: Dict[str, int] = {}
