from fastapi import APIRouter, Depends, HTTPException
import logging

from placemap.core.logger import logs
from placemap.models.places_model import CleanupReport, ReconcileSummary
from placemap.routes.dependencies import get_places_service
from placemap.services.places_service import PlacesService

router = APIRouter(prefix="/maintenance", tags=["maintenance"])

@router.post("/cleanup-coordinates", response_model=CleanupReport)
async def cleanup_coordinates_endpoint(service: PlacesService = Depends(get_places_service)):
    """Removes the redundant legacy coordinate fields from every stored place."""
    try:
        return await service.cleanup_legacy_coordinates()
    except Exception as e:
        logs.log(logging.ERROR, f"Error in cleanup_coordinates_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/reconcile-coordinates", response_model=ReconcileSummary)
async def reconcile_coordinates_endpoint(
    dry_run: bool = False,
    service: PlacesService = Depends(get_places_service)
):
    """Writes corrected geometries back to storage. Unrecoverable ones are only reported."""
    try:
        return await service.reconcile_stored_coordinates(dry_run=dry_run)
    except Exception as e:
        logs.log(logging.ERROR, f"Error in reconcile_coordinates_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
