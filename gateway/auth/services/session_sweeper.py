"""
Periodic session sweep.

Runs SessionPolicy.sweep on a fixed interval as an asyncio task owned by the
application lifespan. A failing tick is logged and retried on the next one.
"""

import asyncio
import logging
from typing import Optional

from gateway.auth.services.session_policy import SessionPolicy

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Background task removing expired and long-revoked sessions."""

    DEFAULT_INTERVAL_SECONDS = 3600

    def __init__(
        self,
        policy: SessionPolicy,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        enabled: bool = True,
    ):
        self._policy = policy
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop. No-op when disabled or already running."""
        if not self.enabled:
            logger.info("Session sweeper disabled")
            return

        if self.is_running:
            return

        self._task = asyncio.create_task(self._run(), name="session-sweeper")
        logger.info(f"Session sweeper started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")

    async def run_once(self) -> int:
        """
        Run a single sweep.

        Returns:
            Number of sessions removed, 0 if the sweep failed
        """
        try:
            return await self._policy.sweep()
        except Exception as e:
            logger.exception(f"Session sweep failed: {e}")
            return 0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
