"""
Sync pipeline components for mirroring the NVD CVE API.

Modules:
    planner: Date window planning (quarterly backfill, incremental sub-windows)
    pacing: Process-wide spacing between API requests
    http_client: NVD API client with pacing and retries
    json_query: Dotted-path access to decoded response bodies
    fetcher: Paginated retrieval of one window
    runner: Sync orchestrator (plan, fetch, merge, checkpoint)
    scheduler: APScheduler integration for periodic syncs

Architecture:
    A run decides its mode from the checkpoint, plans windows no longer than
    120 days, fetches each window page by page into its own shard, rebuilds
    the consolidated dataset from all shards and finally advances the
    checkpoint.

Usage:
    from ingestion.runner import SyncRunner

Example:
    runner = SyncRunner(data_dir=Path("~/nvd_data").expanduser())
    summary = await runner.run()

    print(f"Merged {summary.records_merged} records")

Error Handling:
    All components raise exceptions from core.exceptions; a fetch failure
    aborts the run and leaves the checkpoint where it was.
"""

__all__ = [
    "fetcher",
    "http_client",
    "json_query",
    "pacing",
    "planner",
    "runner",
    "scheduler",
]
