"""
Exception types shared by the services, repositories and routes.

Bad coordinate values, stale async results and invalid interaction triggers
are never errors; only malformed shapes and collaborator failures raise.
"""


class PlaceMapError(Exception):
    """Base class for all application errors."""


class GeometryShapeError(PlaceMapError, ValueError):
    """A geometry that is not a GeoJSON Point with exactly two numeric members."""


class PlaceValidationError(PlaceMapError, ValueError):
    """A place document is missing required fields or has the wrong structure."""


class PlaceNotFoundError(PlaceMapError, LookupError):
    def __init__(self, place_id: str):
        super().__init__(f"Place not found: {place_id}")
        self.place_id = place_id


class PlaceStoreError(PlaceMapError):
    """The persistence collaborator (database or HTTP API) failed."""
