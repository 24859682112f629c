"""
Minimum spacing between HTTP request attempts
"""

import asyncio
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


class RequestPacer:
    """
    Enforce a minimum interval between the starts of consecutive requests.

    NVD rate limits are evaluated per API key across all queries, so the
    client owns one pacer and waits on it before every attempt, retries
    included.
    """

    def __init__(self, interval_seconds: float, clock=time.monotonic, sleep=asyncio.sleep):
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_request_at: Optional[float] = None
        self.total_wait_seconds = 0.0

    async def wait(self) -> None:
        """Block until the next request may start, then claim the slot."""
        if self._last_request_at is not None:
            remaining = self._last_request_at + self.interval_seconds - self._clock()
            if remaining > 0:
                logger.debug(f"Pacing: sleeping {remaining:.2f}s before next request")
                self.total_wait_seconds += remaining
                await self._sleep(remaining)

        self._last_request_at = self._clock()
