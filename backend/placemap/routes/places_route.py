from fastapi import APIRouter, Depends, HTTPException, Response
from typing import Optional
import logging

from placemap.core.errors import GeometryShapeError, PlaceNotFoundError, PlaceValidationError
from placemap.core.logger import logs
from placemap.models.places_model import (
    CategoriesResponse,
    PlaceCreate,
    PlacesFilter,
    PlacesResponse,
    PlaceUpdate,
    PlaceView,
)
from placemap.routes.dependencies import get_places_service
from placemap.services.places_service import PlacesService

router = APIRouter(prefix="/places", tags=["places"])

@router.get("", response_model=PlacesResponse)
async def list_places_endpoint(
    category: Optional[str] = None,
    search: Optional[str] = None,
    service: PlacesService = Depends(get_places_service)
):
    try:
        places = await service.list_places(PlacesFilter(category=category, search=search))
        return PlacesResponse(features=places)
    except Exception as e:
        logs.log(logging.ERROR, f"Error in list_places_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load places")

# Declared before /{place_id} so "categories" is not taken for an id
@router.get("/categories", response_model=CategoriesResponse)
async def categories_endpoint(service: PlacesService = Depends(get_places_service)):
    try:
        return CategoriesResponse(categories=await service.category_counts())
    except Exception as e:
        logs.log(logging.ERROR, f"Error in categories_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load categories")

@router.post("", response_model=PlaceView)
async def create_place_endpoint(
    payload: PlaceCreate,
    service: PlacesService = Depends(get_places_service)
):
    try:
        return await service.create_place(payload)
    except (PlaceValidationError, GeometryShapeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logs.log(logging.ERROR, f"Error in create_place_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to create place")

@router.get("/{place_id}", response_model=PlaceView)
async def get_place_endpoint(place_id: str, service: PlacesService = Depends(get_places_service)):
    try:
        return await service.get_place(place_id)
    except PlaceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logs.log(logging.ERROR, f"Error in get_place_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load place")

@router.put("/{place_id}", response_model=PlaceView)
async def update_place_endpoint(
    place_id: str,
    payload: PlaceUpdate,
    service: PlacesService = Depends(get_places_service)
):
    try:
        return await service.update_place(place_id, payload)
    except PlaceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (PlaceValidationError, GeometryShapeError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logs.log(logging.ERROR, f"Error in update_place_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update place")

@router.delete("/{place_id}", status_code=204)
async def delete_place_endpoint(place_id: str, service: PlacesService = Depends(get_places_service)):
    try:
        await service.delete_place(place_id)
    except PlaceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logs.log(logging.ERROR, f"Error in delete_place_endpoint: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete place")
    return Response(status_code=204)
