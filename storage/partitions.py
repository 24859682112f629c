"""
Append-only shard files, one per fetched window
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, IO, Iterable, List, Optional

from core.exceptions import PartitionError
from schemas.sync import TimeWindow

logger = logging.getLogger(__name__)

SHARD_PREFIX = "nvdcve-"
SHARD_SUFFIX = ".jsonl"
PARTIAL_SUFFIX = ".part"
INCREMENTAL_LABEL_PREFIX = "mod-"


@dataclass
class ShardHandle:
    """Writable shard for one window; lives as ``<name>.part`` until sealed"""
    window: TimeWindow
    path: Path
    partial_path: Path
    records_written: int = 0
    _file: Optional[IO[str]] = field(default=None, repr=False)

    @property
    def sealed(self) -> bool:
        return self._file is None and self.path.exists()


def shard_name(label: str) -> str:
    return f"{SHARD_PREFIX}{label}{SHARD_SUFFIX}"


def _shard_sort_key(path: Path):
    # Backfill quarters (YYYY-QN) sort before incremental windows (mod-...),
    # and both label formats sort chronologically as plain strings.
    label = path.name[len(SHARD_PREFIX):-len(SHARD_SUFFIX)]
    return (label.startswith(INCREMENTAL_LABEL_PREFIX), label)


class PartitionStore:
    """
    Owns the shard files in a data directory.

    Shards are JSON Lines: one record per line, so a shard can be appended
    page by page and read back one record at a time. A shard only gets its
    final name once its window has been fetched completely; anything still
    ending in ``.part`` is an interrupted fetch.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def open_shard(self, window: TimeWindow) -> ShardHandle:
        """Create an empty shard for ``window``, replacing any earlier attempt."""
        path = self.data_dir / shard_name(window.label)
        partial_path = path.with_name(path.name + PARTIAL_SUFFIX)

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            if path.exists():
                logger.info(f"Replacing existing shard {path.name}")
            handle = ShardHandle(window=window, path=path, partial_path=partial_path)
            handle._file = open(partial_path, "w", encoding="utf-8")
        except OSError as e:
            raise PartitionError(
                "Failed to open shard",
                context={"shard": path.name, "window": window.label},
                original_exception=e
            )

        return handle

    def append(self, handle: ShardHandle, records: Iterable[Dict[str, Any]]) -> int:
        """Write ``records`` to the end of the shard; returns how many were written."""
        if handle._file is None:
            raise PartitionError(
                "Cannot append to a closed shard",
                context={"shard": handle.path.name, "window": handle.window.label}
            )

        count = 0
        try:
            for record in records:
                handle._file.write(json.dumps(record, ensure_ascii=False))
                handle._file.write("\n")
                count += 1
            handle._file.flush()
        except (OSError, TypeError, ValueError) as e:
            raise PartitionError(
                "Failed to append records to shard",
                context={
                    "shard": handle.path.name,
                    "window": handle.window.label,
                    "records_written": handle.records_written + count
                },
                original_exception=e
            )

        handle.records_written += count
        return count

    def seal(self, handle: ShardHandle) -> Path:
        """Make the shard durable and give it its final name."""
        if handle._file is None:
            raise PartitionError(
                "Shard is already closed",
                context={"shard": handle.path.name, "window": handle.window.label}
            )

        try:
            handle._file.flush()
            os.fsync(handle._file.fileno())
            handle._file.close()
            handle._file = None
            os.replace(handle.partial_path, handle.path)
        except OSError as e:
            raise PartitionError(
                "Failed to seal shard",
                context={"shard": handle.path.name, "window": handle.window.label},
                original_exception=e
            )

        logger.info(f"Sealed {handle.path.name} with {handle.records_written} records")
        return handle.path

    def discard(self, handle: ShardHandle) -> None:
        """Drop an unsealed shard after a failed fetch; sealed shards are untouched."""
        if handle._file is not None:
            handle._file.close()
            handle._file = None
        handle.partial_path.unlink(missing_ok=True)
        logger.info(f"Discarded partial shard {handle.partial_path.name}")

    def list_shards(self) -> List[Path]:
        """Sealed shards, oldest window first."""
        if not self.data_dir.exists():
            return []
        shards = [
            p for p in self.data_dir.glob(f"{SHARD_PREFIX}*{SHARD_SUFFIX}")
            if p.is_file()
        ]
        return sorted(shards, key=_shard_sort_key)

    def list_partial(self) -> List[Path]:
        """Leftovers of interrupted fetches."""
        if not self.data_dir.exists():
            return []
        return sorted(self.data_dir.glob(f"{SHARD_PREFIX}*{SHARD_SUFFIX}{PARTIAL_SUFFIX}"))

    def remove_partial(self) -> int:
        removed = 0
        for path in self.list_partial():
            path.unlink(missing_ok=True)
            removed += 1
        if removed:
            logger.warning(f"Removed {removed} partial shard(s) left by an interrupted run")
        return removed
