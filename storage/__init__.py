"""
Flat-file storage for the local mirror.

Modules:
    partitions: One JSON Lines shard per fetched window
    checkpoint: Timestamp of the last successful sync
    merger: Streaming consolidation of shards into one dataset
    run_summary: Outcome of the last run

Layout of the data directory:
    nvdcve-<label>.jsonl    sealed shards (``.part`` while being fetched)
    last_update.meta        checkpoint
    local_nvd_data.json     consolidated dataset
    last_run.json           last run summary
    .sync.lock              run lock
"""

__all__ = [
    "checkpoint",
    "merger",
    "partitions",
    "run_summary",
]
