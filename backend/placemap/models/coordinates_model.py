from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Sequence
from enum import Enum


class GeographicPoint(BaseModel):
    """A WGS84 position. GeoJSON order is [longitude, latitude]."""
    model_config = ConfigDict(frozen=True)

    longitude: float
    latitude: float

    def as_coordinates(self) -> List[float]:
        return [self.longitude, self.latitude]

    @classmethod
    def from_coordinates(cls, coordinates: Sequence[float]) -> "GeographicPoint":
        lon, lat = coordinates
        return cls(longitude=lon, latitude=lat)


# --- Enums ---
class ReconcileOutcome(str, Enum):
    UNCHANGED = "UNCHANGED"
    CORRECTED_ZERO = "CORRECTED_ZERO"
    CORRECTED_AXIS = "CORRECTED_AXIS"
    CORRECTED_COMPOUND = "CORRECTED_COMPOUND"
    UNRECOVERABLE = "UNRECOVERABLE"


class AxisCorrection(str, Enum):
    LONGITUDE_DECIMAL_SHIFT = "LONGITUDE_DECIMAL_SHIFT"  # 116.6 -> 11.66
    LATITUDE_DECIMAL_SHIFT = "LATITUDE_DECIMAL_SHIFT"    # 4.672 -> 46.72
    SWAPPED_AXES = "SWAPPED_AXES"


class ReconcileReport(BaseModel):
    """Result of a reconciliation pass, tagged with the branch that fired."""
    model_config = ConfigDict(frozen=True)

    point: GeographicPoint
    original: GeographicPoint
    outcome: ReconcileOutcome
    axis_correction: Optional[AxisCorrection] = None

    @property
    def changed(self) -> bool:
        return self.outcome != ReconcileOutcome.UNCHANGED

    @property
    def needs_manual_correction(self) -> bool:
        return self.outcome == ReconcileOutcome.UNRECOVERABLE
