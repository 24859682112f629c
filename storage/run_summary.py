"""
Last run outcome, kept next to the data for status reporting
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from schemas.sync import RunSummary

logger = logging.getLogger(__name__)

RUN_SUMMARY_FILE_NAME = "last_run.json"


class RunSummaryStore:
    """Overwrites ``last_run.json`` after every run, successful or not"""

    def __init__(self, data_dir: Path):
        self.path = Path(data_dir) / RUN_SUMMARY_FILE_NAME

    def read(self) -> Optional[RunSummary]:
        if not self.path.exists():
            return None
        try:
            return RunSummary.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable run summary {self.path}: {e}")
            return None

    def write(self, summary: RunSummary) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(summary.model_dump_json(indent=2))
            f.write("\n")
        os.replace(tmp_path, self.path)
