"""
Pydantic schemas for sync windows, API pages, checkpoints and run summaries
"""

import enum
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

# API-imposed limit on the length of any date range filter
MAX_WINDOW_LENGTH = timedelta(days=120)

NVD_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.{millis:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_nvd_timestamp(value: datetime) -> str:
    """Render a datetime the way the NVD API expects it (millisecond UTC)."""
    value = value.astimezone(timezone.utc)
    return value.strftime(NVD_TIMESTAMP_FORMAT.format(millis=value.microsecond // 1000))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class SyncMode(str, enum.Enum):
    """How a run decides which windows to fetch"""
    BACKFILL = "backfill"
    INCREMENTAL = "incremental"


class DateFilter(str, enum.Enum):
    """Which record timestamp a window filters on"""
    PUBLISHED = "published"
    MODIFIED = "modified"

    @property
    def parameter_names(self) -> tuple:
        if self is DateFilter.PUBLISHED:
            return ("pubStartDate", "pubEndDate")
        return ("lastModStartDate", "lastModEndDate")


class RunStatus(str, enum.Enum):
    """Sync run status"""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class TimeWindow(BaseModel):
    """
    A bounded time range used to filter remote records.

    Ensures:
    - Both bounds are timezone-aware UTC
    - end is strictly after start
    - The range never exceeds the API's 120 day limit
    """

    start: datetime
    end: datetime
    label: str = Field(..., min_length=1)
    date_filter: DateFilter = DateFilter.PUBLISHED

    @validator("start", "end")
    def ensure_utc(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @validator("end")
    def check_bounds(cls, v, values):
        start = values.get("start")
        if start is None:
            return v
        if v <= start:
            raise ValueError(f"Window end {v.isoformat()} must be after start {start.isoformat()}")
        if v - start > MAX_WINDOW_LENGTH:
            raise ValueError(
                f"Window of {(v - start).days} days exceeds the {MAX_WINDOW_LENGTH.days} day API limit"
            )
        return v

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def query_params(self) -> Dict[str, str]:
        """Date filter pair for the API query string"""
        start_name, end_name = self.date_filter.parameter_names
        return {
            start_name: format_nvd_timestamp(self.start),
            end_name: format_nvd_timestamp(self.end),
        }

    class Config:
        frozen = True


class Page(BaseModel):
    """One API response within a window"""

    records: List[Dict[str, Any]] = Field(default_factory=list)
    total_results: int = Field(..., ge=0)
    start_index: int = Field(..., ge=0)
    page_size: int = Field(..., ge=1)

    @property
    def is_last(self) -> bool:
        return self.start_index + self.page_size >= self.total_results


class Checkpoint(BaseModel):
    """End of the last successfully completed sync"""

    last_sync_end: datetime

    @validator("last_sync_end")
    def ensure_utc(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class RunSummary(BaseModel):
    """Outcome of one sync run, persisted for status reporting"""

    run_id: str
    mode: Optional[SyncMode] = None
    status: RunStatus = RunStatus.RUNNING
    started_at: datetime
    completed_at: Optional[datetime] = None
    windows_planned: int = 0
    windows_fetched: int = 0
    records_fetched: int = 0
    records_merged: int = 0
    requests_made: int = 0
    pacing_wait_seconds: float = 0.0
    checkpoint_before: Optional[datetime] = None
    checkpoint_after: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()
