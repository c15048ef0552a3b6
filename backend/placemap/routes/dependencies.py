from placemap.core.config import settings
from placemap.core.db_connection import get_db
from placemap.repos.local_repo import LocalPlacesRepository
from placemap.repos.places_repo import PlacesRepository
from placemap.services.places_service import PlacesService

# --- Dependency Injection Helper ---
async def get_places_repo():
    """Get the appropriate repository based on storage mode."""
    if settings.STORAGE_MODE == "local":
        return LocalPlacesRepository()
    db = await get_db()
    return PlacesRepository(db)

async def get_places_service() -> PlacesService:
    repo = await get_places_repo()
    return PlacesService(repo)
