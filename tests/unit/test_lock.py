import json
import os

import pytest

from core.exceptions import RunLockError
from core.lock import LOCK_FILE_NAME, RunLock


def test_second_holder_is_rejected(tmp_path):
    first = RunLock(tmp_path)
    second = RunLock(tmp_path)

    first.acquire()
    try:
        with pytest.raises(RunLockError):
            second.acquire()
        assert not second.held
    finally:
        first.release()


def test_lock_reusable_after_release(tmp_path):
    with RunLock(tmp_path) as lock:
        assert lock.held

    assert not lock.held
    with RunLock(tmp_path) as again:
        assert again.held


def test_lock_file_records_holder(tmp_path):
    with RunLock(tmp_path):
        holder = json.loads((tmp_path / LOCK_FILE_NAME).read_text(encoding="utf-8"))

    assert holder["pid"] == os.getpid()
    assert "acquired_at" in holder


def test_unusable_data_dir_raises_lock_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(RunLockError) as exc_info:
        RunLock(blocker).acquire()

    assert isinstance(exc_info.value.original_exception, OSError)


def test_acquire_is_idempotent(tmp_path):
    lock = RunLock(tmp_path)
    lock.acquire()
    lock.acquire()
    lock.release()
    lock.release()

    assert not lock.held
