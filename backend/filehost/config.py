"""Application configuration from environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All config comes from env vars or .env file."""

    UPLOAD_KEY: str = ""  # uploads are refused while unset
    FILE_STORAGE_PATH: str = "./uploads"
    INDEX_PERSISTENCE: str = "json"  # "json" or "memory"
    MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024
    API_PORT: int = 8721
    CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
