# ============================================================================
# File: tests/integration/test_failure_recovery.py
# ============================================================================

import pytest
from unittest.mock import patch

from conftest import FakeNVDApi, make_runner, nvd_record, utc
from core.exceptions import (
    AuthenticationError,
    CheckpointError,
    MergeError,
    RunLockError,
    SyncException,
)
from core.lock import RunLock
from ingestion.runner import SyncState
from schemas.sync import RunStatus
from storage.checkpoint import CheckpointStore
from storage.merger import DATASET_FILE_NAME
from storage.run_summary import RunSummaryStore


@pytest.mark.asyncio
async def test_failed_window_does_not_advance_checkpoint(tmp_path):
    """
    Failure Recovery Test:
    1. Backfill fails on the fifth window (2000-Q1)
    2. Checkpoint must NOT be written
    3. Shards of completed windows survive, no partial shard remains
    4. Rerun completes and writes the checkpoint
    """

    # -------------------------------------------------------
    # STEP 1: API rejects one window
    # -------------------------------------------------------
    fake_api = FakeNVDApi(
        catalog={"1999-01-01T00:00:00.000Z": [nvd_record("CVE-1999-0001")]},
        failures={"2000-01-01T00:00:00.000Z": 401}
    )
    runner = make_runner(tmp_path, fake_api, now=utc(2001, 2, 1))

    with pytest.raises(AuthenticationError):
        await runner.run()

    # -------------------------------------------------------
    # STEP 2: Nothing was committed
    # -------------------------------------------------------
    assert CheckpointStore(tmp_path).read() is None
    assert not (tmp_path / DATASET_FILE_NAME).exists()
    assert runner.state == SyncState.FAILED

    sealed = sorted(p.name for p in tmp_path.glob("nvdcve-*.jsonl"))
    assert sealed == [
        "nvdcve-1999-Q1.jsonl", "nvdcve-1999-Q2.jsonl",
        "nvdcve-1999-Q3.jsonl", "nvdcve-1999-Q4.jsonl",
    ]
    assert not list(tmp_path.glob("*.part"))

    last_run = RunSummaryStore(tmp_path).read()
    assert last_run.status == RunStatus.FAILED
    assert last_run.windows_fetched == 4
    assert "Authentication failed" in last_run.error_message

    # -------------------------------------------------------
    # STEP 3: Rerun once the API recovers
    # -------------------------------------------------------
    fake_api.failures.clear()
    summary = await make_runner(tmp_path, fake_api, now=utc(2001, 2, 1)).run()

    assert summary.status == RunStatus.SUCCESS
    assert summary.windows_fetched == 9
    assert len(list(tmp_path.glob("nvdcve-*.jsonl"))) == 9
    assert CheckpointStore(tmp_path).read().last_sync_end == utc(2001, 2, 1)


@pytest.mark.asyncio
async def test_failed_incremental_run_is_repeated_from_same_checkpoint(tmp_path):
    CheckpointStore(tmp_path).write(utc(2020, 1, 1))
    fake_api = FakeNVDApi(failures={"2020-01-01T00:00:00.000Z": 403})

    with pytest.raises(AuthenticationError):
        await make_runner(tmp_path, fake_api, now=utc(2020, 2, 15)).run()

    assert CheckpointStore(tmp_path).read().last_sync_end == utc(2020, 1, 1)

    fake_api.failures.clear()
    await make_runner(tmp_path, fake_api, now=utc(2020, 3, 1)).run()

    # Same start as the failed attempt
    assert fake_api.calls[-1]["lastModStartDate"] == "2020-01-01T00:00:00.000Z"
    assert CheckpointStore(tmp_path).read().last_sync_end == utc(2020, 3, 1)


@pytest.mark.asyncio
async def test_merge_failure_keeps_checkpoint_and_dataset(tmp_path):
    CheckpointStore(tmp_path).write(utc(2020, 1, 1))
    (tmp_path / DATASET_FILE_NAME).write_text('[\n{"cve": {"id": "CVE-OLD"}}\n]\n', encoding="utf-8")
    (tmp_path / "nvdcve-2019-Q4.jsonl").write_text('{"cve": {"id": \n', encoding="utf-8")
    runner = make_runner(tmp_path, FakeNVDApi(), now=utc(2020, 2, 15))

    with pytest.raises(MergeError):
        await runner.run()

    assert CheckpointStore(tmp_path).read().last_sync_end == utc(2020, 1, 1)
    assert "CVE-OLD" in (tmp_path / DATASET_FILE_NAME).read_text(encoding="utf-8")
    assert RunSummaryStore(tmp_path).read().status == RunStatus.FAILED
    assert runner.state == SyncState.FAILED


@pytest.mark.asyncio
async def test_checkpoint_write_failure_fails_run(tmp_path):
    runner = make_runner(tmp_path, FakeNVDApi(), now=utc(1999, 2, 1))

    with patch.object(
        runner.checkpoints, "write", side_effect=CheckpointError("Failed to write checkpoint")
    ):
        with pytest.raises(CheckpointError):
            await runner.run()

    assert runner.state == SyncState.FAILED
    assert RunSummaryStore(tmp_path).read().error_message == "Failed to write checkpoint"
    # Data was merged, but without a checkpoint the next run backfills again
    assert (tmp_path / DATASET_FILE_NAME).exists()
    assert CheckpointStore(tmp_path).read() is None


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected(tmp_path):
    fake_api = FakeNVDApi()
    runner = make_runner(tmp_path, fake_api, now=utc(2001, 2, 1))

    with RunLock(tmp_path):
        with pytest.raises(RunLockError):
            await runner.run()

    assert fake_api.calls == []
    assert CheckpointStore(tmp_path).read() is None

    # Lock released: the run proceeds
    await runner.run()
    assert CheckpointStore(tmp_path).read() is not None


@pytest.mark.asyncio
async def test_unexpected_error_is_wrapped(tmp_path):
    runner = make_runner(tmp_path, FakeNVDApi(), now=utc(1999, 2, 1))

    with patch.object(runner.merger, "merge", side_effect=RuntimeError("unexpected")):
        with pytest.raises(SyncException) as exc_info:
            await runner.run()

    assert type(exc_info.value) is SyncException
    assert isinstance(exc_info.value.original_exception, RuntimeError)
    assert exc_info.value.context["state"] == "merging"
    assert CheckpointStore(tmp_path).read() is None
    # The lock is released even after an unexpected failure
    assert not runner.lock.held
