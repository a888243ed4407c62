"""
Recurring trigger for scheduled (incremental) sync passes.

PeriodicTrigger runs an async callback every N minutes on the running
event loop. The first run happens one full period after arm(), then
every period after that. arm() always replaces the previous schedule,
and a period of 0 leaves the trigger cleared.

Usage:
    trigger = PeriodicTrigger(engine.run_incremental)
    setup_schedule(trigger, config)
    await trigger.wait()          # until clear() or Ctrl+C
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

from feed_mirror.core.config import Config
from feed_mirror.core.logger import get_logger

logger = get_logger(__name__)


SECONDS_PER_MINUTE = 60


class PeriodicTrigger:
    """
    Asyncio-task based recurring timer.

    Attributes:
        next_run_at: Local time of the next callback run, or None.
        stopped: Event set whenever the trigger is cleared.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ) -> None:
        self._callback = callback
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._period_minutes = 0
        self.next_run_at: datetime | None = None
        self.stopped = asyncio.Event()
        self.stopped.set()

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def period_minutes(self) -> int:
        return self._period_minutes

    def arm(self, period_minutes: int | None) -> bool:
        """
        (Re)schedule the callback.

        Args:
            period_minutes: Interval in minutes. 0 or None only clears.

        Returns:
            True if the trigger is now armed.

        Note:
            Must be called from within a running event loop.
        """
        self._cancel()
        if not period_minutes or period_minutes <= 0:
            self.stopped.set()
            return False

        self._period_minutes = period_minutes
        self.stopped.clear()
        self._task = asyncio.get_running_loop().create_task(
            self._run(period_minutes * SECONDS_PER_MINUTE)
        )
        logger.debug(f"Trigger armed: every {period_minutes} minute(s)")
        return True

    def clear(self) -> None:
        """
        Cancel the schedule.

        Safe to call from inside the callback: the running callback
        finishes and no further run is scheduled.
        """
        self._cancel()
        self.stopped.set()

    def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._period_minutes = 0
        self.next_run_at = None

    async def wait(self) -> None:
        """Block until the trigger is cleared."""
        await self.stopped.wait()

    async def _run(self, period_seconds: float) -> None:
        me = asyncio.current_task()
        while self._task is me:
            self.next_run_at = datetime.now() + timedelta(seconds=period_seconds)
            await self._sleep(period_seconds)
            if self._task is not me:
                return
            try:
                await self._callback()
            except Exception:
                logger.exception("Scheduled run failed")


def setup_schedule(trigger: PeriodicTrigger, config: Config) -> bool:
    """
    Arm the trigger from the current configuration.

    Called at startup and whenever the settings change.

    Returns:
        True if scheduled sync is enabled.
    """
    period = config.sync.period_minutes
    if trigger.arm(period):
        logger.info(f"Scheduled sync every {period} minute(s)")
        return True

    logger.info("Scheduled sync is disabled (sync.period_minutes is 0)")
    return False
