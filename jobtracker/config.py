# jobtracker/config.py

from __future__ import annotations
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- Core ---
    SECRET_KEY: str = Field("change-me", description="JWT signing key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60, ge=5, le=60 * 24)
    DEBUG: bool = True  # set False in prod

    # --- Database ---
    DATABASE_URL: str = Field("sqlite:///./jobtracker.db")

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # --- Real-time notifications ---
    # Upper bound for a single websocket send; slow sockets are skipped, not awaited.
    NOTIFY_SEND_TIMEOUT_SECONDS: float = Field(5.0, gt=0)

    # --- Dashboards ---
    RECENT_APPLICATION_DAYS: int = Field(7, ge=1)
    DASHBOARD_RECENT_LIMIT: int = Field(10, ge=1)
    DASHBOARD_TOP_JOBS: int = Field(5, ge=1)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
