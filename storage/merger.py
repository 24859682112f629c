"""
Streaming consolidation of shard files into one dataset.

Loading every shard into memory at once does not scale to decades of CVE
records, so the merger streams: shards are read one at a time, one line at a
time, and each record is written to the output as soon as it is decoded.
The output is written to a temporary file and swapped in only when the merge
completed, so a failed merge leaves the previous dataset in place.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, IO, Iterator, Sequence, Tuple

from core.exceptions import MergeError
from ingestion.json_query import extract_field

logger = logging.getLogger(__name__)

DATASET_FILE_NAME = "local_nvd_data.json"
RECORD_ID_PATH = "cve.id"


@dataclass
class MergeResult:
    path: Path
    records_written: int
    shards_merged: int
    duplicates_dropped: int = 0


class StreamMerger:
    """
    Fold sealed shards, in the order given, into a single JSON array.

    With ``deduplicate`` enabled a first pass indexes where the last
    occurrence of each CVE ID lives (shard, line) and the second pass only
    emits that occurrence. The index holds IDs, never record bodies.
    """

    def __init__(self, output_path: Path, deduplicate: bool = False):
        self.output_path = Path(output_path)
        self.deduplicate = deduplicate

    def merge(self, shards: Sequence[Path]) -> MergeResult:
        logger.info(f"Merging {len(shards)} shard(s) into {self.output_path.name}")

        latest = self._index_latest(shards) if self.deduplicate else None
        tmp_path = self.output_path.with_name(self.output_path.name + ".tmp")
        records_written = 0
        duplicates_dropped = 0

        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as out:
                out.write("[")
                for shard_index, shard in enumerate(shards):
                    logger.info(f"Merging {shard.name}...")
                    for line_number, record in self._read_shard(shard):
                        if latest is not None and not self._is_latest(
                            latest, record, shard_index, line_number
                        ):
                            duplicates_dropped += 1
                            continue
                        self._write_record(out, record, records_written)
                        records_written += 1
                out.write("\n]\n" if records_written else "]\n")
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, self.output_path)
        except MergeError:
            tmp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise MergeError(
                "Failed to write consolidated dataset",
                context={"output": str(self.output_path), "records_written": records_written},
                original_exception=e
            )

        if duplicates_dropped:
            logger.info(f"Dropped {duplicates_dropped} superseded duplicate record(s)")
        logger.info(f"Merged data saved to {self.output_path} ({records_written} records)")

        return MergeResult(
            path=self.output_path,
            records_written=records_written,
            shards_merged=len(shards),
            duplicates_dropped=duplicates_dropped,
        )

    @staticmethod
    def _write_record(out: IO[str], record: Dict[str, Any], position: int) -> None:
        out.write("\n" if position == 0 else ",\n")
        out.write(json.dumps(record, ensure_ascii=False))

    def _read_shard(self, shard: Path) -> Iterator[Tuple[int, Dict[str, Any]]]:
        line_number = 0
        try:
            with open(shard, "r", encoding="utf-8") as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    yield line_number, json.loads(line)
        except json.JSONDecodeError as e:
            raise MergeError(
                "Shard contains an undecodable line",
                context={"shard": shard.name, "line_number": line_number},
                original_exception=e
            )
        except OSError as e:
            raise MergeError(
                "Failed to read shard",
                context={"shard": str(shard)},
                original_exception=e
            )

    def _index_latest(self, shards: Sequence[Path]) -> Dict[str, Tuple[int, int]]:
        latest: Dict[str, Tuple[int, int]] = {}
        for shard_index, shard in enumerate(shards):
            for line_number, record in self._read_shard(shard):
                record_id = extract_field(record, RECORD_ID_PATH)
                if record_id is not None:
                    latest[record_id] = (shard_index, line_number)
        logger.debug(f"Indexed {len(latest)} distinct record IDs")
        return latest

    @staticmethod
    def _is_latest(
        latest: Dict[str, Tuple[int, int]],
        record: Dict[str, Any],
        shard_index: int,
        line_number: int
    ) -> bool:
        record_id = extract_field(record, RECORD_ID_PATH)
        if record_id is None:
            return True
        return latest.get(record_id) == (shard_index, line_number)
