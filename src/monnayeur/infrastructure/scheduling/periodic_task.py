"""
Periodic background task runner.

Replaces boot-time cron jobs with an explicit object that the
application starts and stops. The sleep function is injectable so tests
can drive ticks without waiting on wall-clock time.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from monnayeur.infrastructure.monitoring.logger import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[object]]
Sleeper = Callable[[float], Awaitable[None]]


class PeriodicTask:
    """
    Run an async job every `interval` seconds until stopped.

    A failing run is logged and the loop continues with the next tick.
    Runs never overlap: the next sleep starts after the job returns.
    """

    def __init__(
        self,
        name: str,
        job: Job,
        interval: float,
        run_immediately: bool = False,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize periodic task.

        Args:
            name: Task name used in logs
            job: Async callable executed on every tick
            interval: Seconds between the end of one run and the next
            run_immediately: Run once before the first sleep
            sleep: Awaitable sleep function
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        self.name = name
        self.job = job
        self.interval = interval
        self.run_immediately = run_immediately
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop in the current event loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info(f"Periodic task '{self.name}' started (every {self.interval}s)")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Periodic task '{self.name}' stopped")

    async def run_once(self) -> bool:
        """
        Execute the job a single time.

        Returns:
            True if the job completed without raising
        """
        self.runs += 1
        try:
            await self.job()
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            logger.error(
                f"Periodic task '{self.name}' run failed: {e}", exc_info=True
            )
            return False

    async def _loop(self) -> None:
        if self.run_immediately:
            await self.run_once()
        while True:
            await self._sleep(self.interval)
            await self.run_once()
