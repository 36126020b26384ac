"""
Advisory deadline for slow session resolution.

The deadline never cancels the work it watches. When it fires it only calls
``on_expire`` so the session can be flagged as delayed.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from rewear.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class LoadingDeadline:
    """Cancellable timer tied to the lifetime of one pending operation."""

    def __init__(self, deadline_s: float, on_expire: Callable[[], None]):
        if deadline_s <= 0:
            raise ValueError("deadline_s must be positive")
        self.deadline_s = deadline_s
        self._on_expire = on_expire
        self._task: asyncio.Task | None = None
        self._expired = False

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def expired(self) -> bool:
        """Whether the deadline fired since the last arm()."""
        return self._expired

    def arm(self) -> None:
        """Start the timer, restarting it if already running."""
        self.disarm()
        self._expired = False
        self._task = asyncio.create_task(self._wait(), name="loading-deadline")

    def disarm(self) -> None:
        """Cancel a pending timer; a no-op once it has fired."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _wait(self) -> None:
        await asyncio.sleep(self.deadline_s)
        self._expired = True
        logger.warning("Loading deadline passed", deadline_s=self.deadline_s)
        try:
            self._on_expire()
        except Exception as e:
            logger.error("Deadline callback failed", error=str(e))

    @asynccontextmanager
    async def watch(self) -> AsyncIterator["LoadingDeadline"]:
        """Arm for the duration of the block, disarming however it exits."""
        self.arm()
        try:
            yield self
        finally:
            self.disarm()
