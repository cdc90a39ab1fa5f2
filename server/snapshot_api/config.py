"""Application configuration loaded from environment variables."""
import os
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database path
    db_path: str = os.getenv("DB_PATH", "/data/healthsaga/healthsaga.db")

    # API configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8080

    # CORS
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    class Config:
        env_prefix = "HEALTHSAGA_"


@lru_cache
def get_settings() -> Settings:
    return Settings()
