"""
FastAPI dependencies
"""

from pathlib import Path

from core.config import settings


def get_data_dir() -> Path:
    """Data directory the status endpoints report on"""
    return settings.DATA_DIR
