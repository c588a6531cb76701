"""
Cache Janitor

Background task that periodically sweeps expired entries from the
in-process tier. Redis expires its own entries.

Only start it in a long-lived server process. Serverless deployments
should set CACHE_OPPORTUNISTIC_CLEANUP_RATE instead, since a fixed timer
is not guaranteed to run there.
"""

import asyncio
from typing import Any, Optional

import structlog

from .cache_manager import CacheManager

DEFAULT_CLEANUP_INTERVAL = 600.0


class CacheJanitor:
    """Runs ``CacheManager.cleanup`` every ``interval`` seconds."""

    def __init__(
        self,
        cache_manager: CacheManager,
        interval: float = DEFAULT_CLEANUP_INTERVAL,
        logger: Any = None,
    ):
        if interval <= 0:
            raise ValueError("Janitor interval must be positive")

        self.cache_manager = cache_manager
        self.interval = interval
        self.logger = logger or structlog.get_logger(__name__)
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run_loop())
        self.logger.info("Cache janitor started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Cache janitor stopped", runs=self.runs)

    def run_once(self) -> int:
        """Sweep once. Returns the number of entries removed."""
        removed = self.cache_manager.cleanup()
        self.runs += 1
        return removed

    async def _run_loop(self) -> None:
        """Background sweep loop."""
        while True:
            try:
                await asyncio.sleep(self.interval)
                self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("Cache janitor sweep failed", error=str(e))
