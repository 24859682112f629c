"""
Unit tests for checkpoint persistence
"""

import pytest

from conftest import utc
from core.exceptions import CheckpointError
from storage.checkpoint import CHECKPOINT_FILE_NAME, CheckpointStore


def test_missing_checkpoint_reads_none(tmp_path):
    assert CheckpointStore(tmp_path).read() is None


def test_write_then_read(tmp_path):
    store = CheckpointStore(tmp_path)

    store.write(utc(2020, 2, 15, 8, 30, 0, 123000))

    assert (tmp_path / CHECKPOINT_FILE_NAME).read_text(encoding="utf-8") == "2020-02-15T08:30:00.123Z\n"
    assert store.read().last_sync_end == utc(2020, 2, 15, 8, 30, 0, 123000)


def test_checkpoint_only_moves_forward(tmp_path):
    store = CheckpointStore(tmp_path)
    store.write(utc(2020, 2, 15))
    store.write(utc(2020, 2, 15))  # same value is allowed
    store.write(utc(2020, 3, 1))

    with pytest.raises(CheckpointError) as exc_info:
        store.write(utc(2020, 2, 1))

    assert exc_info.value.context["operation"] == "write"
    assert store.read().last_sync_end == utc(2020, 3, 1)


def test_no_temp_file_left_behind(tmp_path):
    CheckpointStore(tmp_path).write(utc(2021, 1, 1))

    assert sorted(p.name for p in tmp_path.iterdir()) == [CHECKPOINT_FILE_NAME]


def test_reads_timestamp_without_milliseconds(tmp_path):
    (tmp_path / CHECKPOINT_FILE_NAME).write_text("2019-06-01T12:00:00Z\n", encoding="utf-8")

    assert CheckpointStore(tmp_path).read().last_sync_end == utc(2019, 6, 1, 12)


def test_corrupt_checkpoint_is_an_error(tmp_path):
    (tmp_path / CHECKPOINT_FILE_NAME).write_text("not a date\n", encoding="utf-8")

    with pytest.raises(CheckpointError) as exc_info:
        CheckpointStore(tmp_path).read()

    assert exc_info.value.context["operation"] == "read"
