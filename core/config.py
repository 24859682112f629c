"""
Application configuration using Pydantic Settings
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # NVD API
    NVD_API_URL: str = "https://services.nvd.nist.gov/rest/json/cves/2.0"
    NVD_API_KEY: Optional[str] = None
    RESULTS_PER_PAGE: int = Field(default=1000, ge=1, le=2000)

    # Sync window planning
    EPOCH_DATE: datetime = datetime(1999, 1, 1, tzinfo=timezone.utc)  # CVE-1999-0001
    MAX_WINDOW_DAYS: int = Field(default=120, ge=1, le=120)

    # NVD asks for a six second sleep between requests
    PACING_INTERVAL_SECONDS: float = Field(default=6.0, ge=0)

    # HTTP
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    MAX_RETRIES: int = Field(default=3, ge=1)
    RETRY_DELAY_SECONDS: float = 1.0
    EMPTY_PAGE_RETRIES: int = Field(default=2, ge=0)

    # Storage
    DATA_DIR: Path = Path.home() / "nvd_data"
    MERGE_DEDUPLICATE: bool = False

    # Scheduling
    SYNC_INTERVAL_HOURS: int = Field(default=24, ge=1)
    SCHEDULER_ENABLED: bool = False

    # Status API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    @validator("EPOCH_DATE")
    def epoch_is_utc(cls, v):
        """Naive epoch dates are taken as UTC"""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @validator("DATA_DIR")
    def expand_data_dir(cls, v):
        return Path(v).expanduser()

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
