"""
Pydantic schemas for data validation and serialization.

Schemas:
    sync: Time windows, API pages, checkpoints and run summaries
    api: Status API response models

Usage:
    from schemas.sync import TimeWindow, Page, Checkpoint, RunSummary
    from schemas.api import HealthCheckResponse

Example:
    window = TimeWindow(
        start=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end=datetime(2024, 3, 31, 23, 59, 59, 999000, tzinfo=timezone.utc),
        label="2024-Q1"
    )

    # Windows longer than the API's 120 day limit fail validation
    assert window.duration.days == 90

Validation:
    TimeWindow enforces end > start and the 120 day limit; all timestamps
    are normalized to timezone-aware UTC.
"""

__all__ = [
    "api",
    "sync",
]
