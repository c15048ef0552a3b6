import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from placemap.core.config import settings
from placemap.core.errors import PlaceStoreError
from placemap.core.logger import logs


class MongoConnection:
    """
    Lazily created motor client shared by all requests.
    Nothing connects until the first database access, so the local JSON
    store works without a MongoDB server around.
    """

    def __init__(self, uri: Optional[str] = None, db_name: Optional[str] = None):
        self.uri = uri or settings.MONGO_URI
        self.db_name = db_name or settings.MONGO_DB_NAME
        self._client: Optional[AsyncIOMotorClient] = None

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            self._client = AsyncIOMotorClient(
                self.uri,
                serverSelectionTimeoutMS=5000,
                retryWrites=True,
            )
            logs.log(logging.INFO, f"MongoDB client created for database '{self.db_name}'")
        return self._client

    def database(self) -> AsyncIOMotorDatabase:
        if settings.STORAGE_MODE != "mongodb":
            raise PlaceStoreError(f"MongoDB is not used in storage mode '{settings.STORAGE_MODE}'")
        return self.client[self.db_name]

    async def ping(self) -> bool:
        try:
            await self.database().command("ping")
            return True
        except Exception as e:
            logs.log(logging.WARNING, f"MongoDB ping failed: {str(e)}")
            return False

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            logs.log(logging.INFO, "MongoDB client closed")


mongo = MongoConnection()


# FastAPI dependency
async def get_db() -> AsyncIOMotorDatabase:
    return mongo.database()
