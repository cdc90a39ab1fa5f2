"""Client configuration loaded from environment variables."""
import os
from functools import lru_cache
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Client settings loaded from environment."""

    # Snapshot service
    server_url: str = "http://127.0.0.1:8080"
    request_timeout: float = 10.0

    # Local store directory
    data_dir: str = os.path.join(os.path.expanduser("~"), ".healthsaga")

    # Reminder polling interval
    reminder_poll_minutes: int = 60

    class Config:
        env_prefix = "HEALTHSAGA_"


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
