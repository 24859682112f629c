"""
Persistence of the last successful sync end
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from core.exceptions import CheckpointError
from schemas.sync import Checkpoint, format_nvd_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

CHECKPOINT_FILE_NAME = "last_update.meta"


class CheckpointStore:
    """
    Single ISO-8601 timestamp in ``last_update.meta``.

    The file's presence is what turns a backfill into an incremental run,
    so a corrupt file is an error rather than a silent reason to re-fetch
    everything since 1999.
    """

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / CHECKPOINT_FILE_NAME

    def read(self) -> Optional[Checkpoint]:
        if not self.path.exists():
            return None

        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise CheckpointError(
                "Failed to read checkpoint",
                context={"path": str(self.path), "operation": "read"},
                original_exception=e
            )

        try:
            return Checkpoint(last_sync_end=parse_timestamp(raw))
        except ValueError as e:
            raise CheckpointError(
                "Checkpoint file does not hold an ISO-8601 timestamp",
                context={"path": str(self.path), "checkpoint_value": raw[:64], "operation": "read"},
                original_exception=e
            )

    def write(self, timestamp: datetime) -> Checkpoint:
        """
        Atomically replace the checkpoint.

        Raises:
            CheckpointError: ``timestamp`` is older than the stored checkpoint
                or the file cannot be written
        """
        checkpoint = Checkpoint(last_sync_end=timestamp)
        current = self.read()

        if current is not None and checkpoint.last_sync_end < current.last_sync_end:
            raise CheckpointError(
                "Refusing to move checkpoint backwards",
                context={
                    "path": str(self.path),
                    "checkpoint_value": checkpoint.last_sync_end.isoformat(),
                    "current_value": current.last_sync_end.isoformat(),
                    "operation": "write"
                }
            )

        value = format_nvd_timestamp(checkpoint.last_sync_end)
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(value + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise CheckpointError(
                "Failed to write checkpoint",
                context={"path": str(self.path), "checkpoint_value": value, "operation": "write"},
                original_exception=e
            )

        logger.info(f"Checkpoint advanced to {value}")
        return checkpoint
