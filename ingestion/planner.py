"""
Time window planning under the API's date range limit.

Backfill runs walk calendar quarters from the epoch year to today and filter
on publication date; incremental runs cover the span since the last
checkpoint and filter on modification date.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from schemas.sync import Checkpoint, DateFilter, SyncMode, TimeWindow, MAX_WINDOW_LENGTH

logger = logging.getLogger(__name__)

QUARTER_START_MONTHS = (1, 4, 7, 10)
LAST_INSTANT = timedelta(milliseconds=1)


def quarter_bounds(year: int, quarter: int):
    """First and last instant (millisecond precision) of a calendar quarter"""
    start = datetime(year, QUARTER_START_MONTHS[quarter - 1], 1, tzinfo=timezone.utc)
    if quarter == 4:
        next_start = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        next_start = datetime(year, QUARTER_START_MONTHS[quarter], 1, tzinfo=timezone.utc)
    return start, next_start - LAST_INSTANT


def plan_backfill(epoch: datetime, now: datetime) -> List[TimeWindow]:
    """One published-date window per quarter, clipped at ``now``"""
    windows = []

    for year in range(epoch.year, now.year + 1):
        for quarter in range(1, 5):
            start, end = quarter_bounds(year, quarter)
            if end < epoch:
                continue
            start = max(start, epoch)
            if start >= now:
                return windows
            windows.append(
                TimeWindow(
                    start=start,
                    end=min(end, now),
                    label=f"{year}-Q{quarter}",
                    date_filter=DateFilter.PUBLISHED,
                )
            )

    return windows


def plan_incremental(
    since: datetime,
    now: datetime,
    max_window: timedelta = MAX_WINDOW_LENGTH
) -> List[TimeWindow]:
    """Contiguous modified-date sub-windows covering ``[since, now]``"""
    windows = []
    current = since

    while current < now:
        end = min(current + max_window, now)
        windows.append(
            TimeWindow(
                start=current,
                end=end,
                label=f"mod-{current:%Y%m%dT%H%M%S}.{current.microsecond // 1000:03d}Z",
                date_filter=DateFilter.MODIFIED,
            )
        )
        current = end

    return windows


def plan(
    mode: SyncMode,
    epoch: datetime,
    now: datetime,
    checkpoint: Optional[Checkpoint] = None,
    max_window_days: int = MAX_WINDOW_LENGTH.days
) -> List[TimeWindow]:
    """
    Produce the ordered windows a run has to fetch.

    Args:
        mode: Backfill or incremental
        epoch: Oldest instant a backfill covers
        now: End of the run's coverage (the run's start time)
        checkpoint: Last completed sync, required for incremental mode
        max_window_days: Longest window the API accepts

    Returns:
        Windows in increasing chronological order; empty when there is
        nothing to fetch
    """
    if not 0 < max_window_days <= MAX_WINDOW_LENGTH.days:
        raise ValueError(
            f"max_window_days must be between 1 and {MAX_WINDOW_LENGTH.days}, got {max_window_days}"
        )

    if mode == SyncMode.BACKFILL:
        windows = plan_backfill(epoch, now)
    else:
        if checkpoint is None:
            raise ValueError("Incremental planning requires a checkpoint")
        windows = plan_incremental(
            checkpoint.last_sync_end, now, timedelta(days=max_window_days)
        )

    logger.info(f"Planned {len(windows)} {mode.value} window(s) ending {now.isoformat()}")
    return windows
