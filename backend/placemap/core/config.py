from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Storage mode: "mongodb" or "local"
    STORAGE_MODE: str = "local"

    # MongoDB Configuration (only needed if STORAGE_MODE=mongodb)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "planB"
    MONGO_COLLECTION: str = "places"

    # Local file storage (only needed if STORAGE_MODE=local)
    LOCAL_DATA_DIR: str = "data"

    # Log level (10=DEBUG, 20=INFO, ...) and log file directory; empty directory logs to console only
    LOGGER: int = 20
    LOG_DIRECTORY: str = "logs"

    # Allowed area: every valid place lies within MAX_DISTANCE_KM of the reference point
    REFERENCE_LONGITUDE: float = 11.566
    REFERENCE_LATITUDE: float = 46.7165
    MAX_DISTANCE_KM: float = 10.0

    # Map / UI defaults
    DEFAULT_ZOOM: float = 14.0
    DEFAULT_CATEGORY: str = "Sonstiges"
    DEBUG_MODE: bool = False

    # HTTP client used by the interaction core to reach the places API
    API_BASE_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT: float = 20.0

    model_config = SettingsConfigDict(
        # Look for .env in the current folder OR the parent folder
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
