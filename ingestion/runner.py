# ============================================================================
# File: ingestion/runner.py
# Description: Sync orchestrator driving plan -> fetch -> merge -> checkpoint
# ============================================================================
"""
Sync Runner - Orchestrates one NVD mirror update.

This module sequences the pipeline as a small state machine:

    DETERMINE_MODE -> PLAN -> FETCHING -> MERGING -> CHECKPOINTING -> DONE

with FAILED reachable from every state. The checkpoint is only advanced
after every planned window was fetched and the merge succeeded, so a failed
run is simply repeated from the same checkpoint next time.
"""

import enum
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from core.config import settings
from core.exceptions import SyncException
from core.lock import RunLock
from ingestion.fetcher import PageFetcher
from ingestion.http_client import NVDClient
from ingestion.planner import plan
from schemas.sync import (
    Checkpoint,
    RunStatus,
    RunSummary,
    SyncMode,
    TimeWindow,
    utc_now,
)
from storage.checkpoint import CheckpointStore
from storage.merger import DATASET_FILE_NAME, StreamMerger
from storage.partitions import PartitionStore
from storage.run_summary import RunSummaryStore

logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    """Orchestrator states"""
    IDLE = "idle"
    DETERMINE_MODE = "determine_mode"
    PLAN = "plan"
    FETCHING = "fetching"
    MERGING = "merging"
    CHECKPOINTING = "checkpointing"
    DONE = "done"
    FAILED = "failed"


def _truncate_to_millis(value: datetime) -> datetime:
    # The checkpoint file stores millisecond precision; keep the in-memory
    # run time identical to what will be persisted.
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


class SyncRunner:
    """
    Production-grade sync orchestrator

    Responsibilities:
    - Decide between historical backfill and incremental sync
    - Fetch every planned window into its own shard, in order
    - Rebuild the consolidated dataset from all sealed shards
    - Control checkpoint advancement
    - Record the outcome of every run
    """

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        client: Optional[NVDClient] = None,
        epoch: Optional[datetime] = None,
        page_size: Optional[int] = None,
        max_window_days: Optional[int] = None,
        deduplicate: Optional[bool] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.data_dir = Path(data_dir or settings.DATA_DIR)
        self.client = client or NVDClient()
        self.epoch = epoch or settings.EPOCH_DATE
        self.page_size = page_size or settings.RESULTS_PER_PAGE
        self.max_window_days = max_window_days or settings.MAX_WINDOW_DAYS
        self.clock = clock

        if deduplicate is None:
            deduplicate = settings.MERGE_DEDUPLICATE

        self.partitions = PartitionStore(self.data_dir)
        self.checkpoints = CheckpointStore(self.data_dir)
        self.merger = StreamMerger(self.data_dir / DATASET_FILE_NAME, deduplicate=deduplicate)
        self.run_summaries = RunSummaryStore(self.data_dir)
        self.lock = RunLock(self.data_dir)

        self.state = SyncState.IDLE
        self._failed_in: Optional[str] = None

    def _transition(self, state: SyncState) -> None:
        logger.debug(f"Sync state {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> RunSummary:
        """
        Run one update with comprehensive error handling.

        Returns:
            RunSummary of the successful run

        Raises:
            RunLockError: Another run holds the data directory
            FetchError: A window could not be fetched
            MergeError / CheckpointError / PartitionError: Storage failures
            SyncException: Any other unexpected failure (wrapped)
        """
        now = _truncate_to_millis(self.clock())
        summary = RunSummary(run_id=uuid.uuid4().hex, started_at=now)

        self.lock.acquire()
        try:
            logger.info("Starting NVD update process using REST API v2.0...")

            try:
                await self._execute(now, summary)

            except SyncException as e:
                self._fail(summary, e.message)
                logger.error(
                    f"Sync run failed in state {self._failed_in}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                raise

            except Exception as e:
                self._fail(summary, str(e))
                logger.exception("Unexpected error in sync pipeline")
                raise SyncException(
                    "Unexpected error in sync pipeline",
                    context={
                        "run_id": summary.run_id,
                        "state": self._failed_in,
                        "windows_fetched": summary.windows_fetched,
                        "records_fetched": summary.records_fetched
                    },
                    original_exception=e
                )

            summary.status = RunStatus.SUCCESS
            summary.completed_at = utc_now()
            self.run_summaries.write(summary)
            self._transition(SyncState.DONE)

            logger.info(
                f"Sync run completed ({summary.mode.value}): "
                f"Windows: {summary.windows_fetched}/{summary.windows_planned}, "
                f"Fetched: {summary.records_fetched}, Merged: {summary.records_merged}, "
                f"Requests: {summary.requests_made} (paced {summary.pacing_wait_seconds:.1f}s), "
                f"Duration: {summary.duration_seconds:.1f}s"
            )
            return summary

        finally:
            self.lock.release()

    def _fail(self, summary: RunSummary, message: str) -> None:
        self._failed_in = self.state.value
        self._transition(SyncState.FAILED)
        summary.status = RunStatus.FAILED
        summary.completed_at = utc_now()
        summary.error_message = message
        try:
            self.run_summaries.write(summary)
        except OSError as e:
            logger.warning(f"Could not record failed run summary: {e}")

    async def _execute(self, now: datetime, summary: RunSummary) -> None:
        # --------------------------------------------------
        # DETERMINE MODE
        # --------------------------------------------------
        self._transition(SyncState.DETERMINE_MODE)
        checkpoint = self.checkpoints.read()
        mode = SyncMode.BACKFILL if checkpoint is None else SyncMode.INCREMENTAL
        summary.mode = mode
        summary.checkpoint_before = checkpoint.last_sync_end if checkpoint else None

        if checkpoint is None:
            logger.info("No checkpoint found; running historical backfill")
        else:
            logger.info(f"Last sync ended {checkpoint.last_sync_end.isoformat()}; running incremental sync")

        # --------------------------------------------------
        # PLAN
        # --------------------------------------------------
        self._transition(SyncState.PLAN)
        windows = plan(mode, self.epoch, now, checkpoint, self.max_window_days)
        summary.windows_planned = len(windows)

        # --------------------------------------------------
        # FETCH
        # --------------------------------------------------
        self._transition(SyncState.FETCHING)
        self.partitions.remove_partial()

        if windows:
            requests_before = self.client.requests_made
            wait_before = self.client.pacer.total_wait_seconds
            try:
                async with self.client:
                    fetcher = PageFetcher(self.client)
                    for position, window in enumerate(windows, start=1):
                        logger.info(
                            f"Fetching window {position}/{len(windows)} {window.label}: "
                            f"{window.date_filter.value} {window.start.isoformat()} to {window.end.isoformat()}"
                        )
                        summary.records_fetched += await self._fetch_window(fetcher, window)
                        summary.windows_fetched += 1
            finally:
                summary.requests_made = self.client.requests_made - requests_before
                summary.pacing_wait_seconds = self.client.pacer.total_wait_seconds - wait_before
        else:
            logger.info("Nothing to fetch; checkpoint is current")

        # --------------------------------------------------
        # MERGE
        # --------------------------------------------------
        self._transition(SyncState.MERGING)
        result = self.merger.merge(self.partitions.list_shards())
        summary.records_merged = result.records_written

        # --------------------------------------------------
        # CHECKPOINT
        # --------------------------------------------------
        self._transition(SyncState.CHECKPOINTING)
        summary.checkpoint_after = self._advance_checkpoint(checkpoint, now).last_sync_end

    async def _fetch_window(self, fetcher: PageFetcher, window: TimeWindow) -> int:
        """Fetch one window into a fresh shard; the shard is discarded on failure."""
        handle = self.partitions.open_shard(window)

        try:
            async for page in fetcher.fetch(window, self.page_size):
                self.partitions.append(handle, page.records)
        except Exception:
            self.partitions.discard(handle)
            raise

        self.partitions.seal(handle)
        return handle.records_written

    def _advance_checkpoint(self, checkpoint: Optional[Checkpoint], now: datetime) -> Checkpoint:
        if checkpoint is not None and checkpoint.last_sync_end >= now:
            # Clock at or behind the stored checkpoint; keep it monotonic.
            logger.warning(
                f"Checkpoint {checkpoint.last_sync_end.isoformat()} is not older than run start "
                f"{now.isoformat()}; leaving it unchanged"
            )
            return checkpoint
        return self.checkpoints.write(now)
