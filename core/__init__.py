"""
Core utilities and configuration for the NVD mirror.

This package provides foundational components used throughout the sync pipeline:

Modules:
    config: Application configuration and environment variable management
    exceptions: Custom exception hierarchy for error handling
    lock: Exclusive run lock on the data directory
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.exceptions import FetchError, TransportError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Only one sync per data directory
    with RunLock(settings.DATA_DIR):
        ...
"""

__all__ = [
    "config",
    "exceptions",
    "lock",
    "logging",
]
