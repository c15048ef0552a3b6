from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from placemap.core.config import settings
from placemap.core.db_connection import mongo
from placemap.core.logger import logs
from placemap.routes.maintenance_route import router as maintenance_router
from placemap.routes.places_route import router as places_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    logs.log(logging.INFO, f"Place Map API starting (storage: {settings.STORAGE_MODE})")
    yield
    mongo.close()


app = FastAPI(title="Place Map API", lifespan=lifespan)
app.include_router(places_router)
app.include_router(maintenance_router)

# --- Root Endpoint ---
@app.get("/")
async def root():
    return {
        "message": "Place Map API",
        "storage": settings.STORAGE_MODE,
        "endpoints": {
            "health": "/health",
            "places": "/places",
            "categories": "/places/categories",
            "maintenance": "/maintenance",
            "docs": "/docs"
        },
        "version": "1.0.0"
    }

# --- Health Check ---
@app.get("/health")
async def health_check():
    storage_ok = True
    if settings.STORAGE_MODE == "mongodb":
        storage_ok = await mongo.ping()
    return {"status": "ok" if storage_ok else "degraded", "storage": settings.STORAGE_MODE}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("placemap.main:app", host="0.0.0.0", port=8000, reload=True)
