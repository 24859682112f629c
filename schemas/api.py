"""
Pydantic schemas for status API responses
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from schemas.sync import RunSummary, RunStatus, utc_now


class ShardInventory(BaseModel):
    """Shard files currently in the data directory"""
    total: int = 0
    backfill: int = 0
    incremental: int = 0
    partial: int = Field(0, description="Unsealed shards left by an interrupted fetch")


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall mirror status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=utc_now)
    request_id: Optional[str] = None
    data_dir: str
    data_dir_readable: bool
    checkpoint: Optional[datetime] = Field(None, description="End of the last successful sync")
    dataset_present: bool = False
    shards: ShardInventory = Field(default_factory=ShardInventory)
    last_run: Optional[RunSummary] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2025-01-26T10:30:00Z",
                "request_id": "3f0c1c9e-8d7a-4d0e-9a43-2f4b8f1e6a11",
                "data_dir": "/home/nvd/nvd_data",
                "data_dir_readable": True,
                "checkpoint": "2025-01-26T02:00:00.000Z",
                "dataset_present": True,
                "shards": {"total": 109, "backfill": 108, "incremental": 1, "partial": 0},
                "last_run": {
                    "run_id": "9b2e4c1f0a7d4e5b8c3a2f1e0d9c8b7a",
                    "mode": "incremental",
                    "status": "success",
                    "started_at": "2025-01-26T02:00:00Z",
                    "completed_at": "2025-01-26T02:01:12Z",
                    "windows_planned": 1,
                    "windows_fetched": 1,
                    "records_fetched": 412,
                    "records_merged": 281734
                }
            }
        }


def determine_status(data_dir_readable: bool, last_run: Optional[RunSummary]) -> str:
    """Overall status from directory access and the last run outcome"""
    if not data_dir_readable:
        return "unhealthy"
    if last_run is not None and last_run.status == RunStatus.FAILED:
        return "degraded"
    return "healthy"
