"""
Script to run one NVD mirror update

Usage:
    python scripts/run_sync.py

Example cron job:
    0 2 * * * cd /path/to/nvd-mirror && python scripts/run_sync.py >> nvd_update.log 2>&1
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.exceptions import SyncException
from core.logging import setup_logging
from ingestion.runner import SyncRunner

logger = logging.getLogger(__name__)


async def run_sync(runner: SyncRunner = None) -> int:
    """Run one update; returns the process exit code"""
    runner = runner or SyncRunner()

    logger.info(f"Data directory: {runner.data_dir}")
    if not settings.NVD_API_KEY:
        logger.warning("NVD_API_KEY is not set; the API applies much lower rate limits without a key")

    try:
        summary = await runner.run()
    except SyncException as e:
        logger.error(f"NVD update process failed: {e}")
        print(f"NVD update process failed: {e.message}", file=sys.stderr)
        return 1

    print(
        f"NVD update process completed successfully. "
        f"{summary.records_merged} records in {runner.merger.output_path}"
    )
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(run_sync()))
