"""
Health check endpoint with checkpoint, shard and last run status
"""

from fastapi import APIRouter, Depends, Request
from pathlib import Path
import logging
import os

from api.dependencies import get_data_dir
from core.exceptions import CheckpointError
from schemas.api import HealthCheckResponse, ShardInventory, determine_status
from storage.checkpoint import CheckpointStore
from storage.merger import DATASET_FILE_NAME
from storage.partitions import PartitionStore, INCREMENTAL_LABEL_PREFIX, SHARD_PREFIX
from storage.run_summary import RunSummaryStore

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


def _shard_inventory(partitions: PartitionStore) -> ShardInventory:
    shards = partitions.list_shards()
    incremental = sum(
        1 for p in shards if p.name.startswith(SHARD_PREFIX + INCREMENTAL_LABEL_PREFIX)
    )
    return ShardInventory(
        total=len(shards),
        backfill=len(shards) - incremental,
        incremental=incremental,
        partial=len(partitions.list_partial()),
    )


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request, data_dir: Path = Depends(get_data_dir)):
    """
    Health check endpoint.

    Returns:
    - Whether the data directory is readable
    - Checkpoint and shard inventory
    - Outcome of the last sync run
    """
    data_dir_readable = data_dir.is_dir() and os.access(data_dir, os.R_OK | os.X_OK)

    checkpoint = None
    shards = ShardInventory()
    last_run = None

    if data_dir_readable:
        try:
            stored = CheckpointStore(data_dir).read()
            checkpoint = stored.last_sync_end if stored else None
        except CheckpointError as e:
            logger.error(f"Failed to read checkpoint: {e.message}")

        shards = _shard_inventory(PartitionStore(data_dir))
        last_run = RunSummaryStore(data_dir).read()
    else:
        logger.error(f"Data directory {data_dir} is not readable")

    return HealthCheckResponse(
        status=determine_status(data_dir_readable, last_run),
        request_id=getattr(request.state, "request_id", None),
        data_dir=str(data_dir),
        data_dir_readable=data_dir_readable,
        checkpoint=checkpoint,
        dataset_present=(data_dir / DATASET_FILE_NAME).is_file(),
        shards=shards,
        last_run=last_run,
    )
