"""
Exclusive run lock for a data directory.

The checkpoint and the consolidated dataset are single-writer files, so only
one sync may run against a data directory at a time.
"""

import fcntl
import json
import logging
import os
import socket
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from core.exceptions import RunLockError

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".sync.lock"


class RunLock:
    """
    Non-blocking flock on ``<data_dir>/.sync.lock``.

    The kernel drops the lock when the process dies, so a crashed run never
    leaves a stale lock behind. The file body records the holder for humans.
    """

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / LOCK_FILE_NAME
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if self._fd is not None:
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as e:
            raise RunLockError(
                "Cannot create run lock",
                context={"lock_path": str(self.path)},
                original_exception=e
            )

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            raise RunLockError(
                "Another sync run is already in progress",
                context={"lock_path": str(self.path)},
                original_exception=e
            )

        holder = {
            "pid": os.getpid(),
            "hostname": socket.gethostname(),
            "acquired_at": datetime.now(timezone.utc).isoformat(),
        }
        os.ftruncate(fd, 0)
        os.write(fd, json.dumps(holder).encode("utf-8"))
        self._fd = fd
        logger.debug(f"Acquired run lock {self.path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug(f"Released run lock {self.path}")

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
