"""One-second tick source for the session runner.

A ticker repeatedly calls one callback until it is cancelled. The runner
creates a fresh ticker every time it starts running and cancels it on every
exit path, so at most one ticker per runner is ever live.
"""

import logging
from collections.abc import Callable
from functools import partial
from typing import Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from pacer.config import settings

logger = logging.getLogger(__name__)


class Ticker(Protocol):
    def cancel(self) -> None: ...


TickerFactory = Callable[[Callable[[], None]], Ticker]


class SchedulerTicker:
    """Interval job on an :class:`AsyncIOScheduler`.

    The job is a coroutine so the scheduler runs it on the event loop thread
    rather than in its thread pool. Late runs are coalesced into one and runs
    missed by more than the grace time are dropped, never fired in a burst.
    Cancellation is synchronous: once ``cancel`` returns, the callback will
    not run again.
    """

    def __init__(
        self,
        callback: Callable[[], None],
        scheduler: AsyncIOScheduler,
        interval: float | None = None,
    ):
        self._callback = callback
        self._cancelled = False
        self._job = scheduler.add_job(
            self._fire,
            "interval",
            seconds=interval if interval is not None else settings.tick_interval_seconds,
            coalesce=True,
            max_instances=1,
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def _fire(self) -> None:
        # A run already handed to the loop may still arrive after cancel()
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception:
            logger.exception("Tick callback failed")

    def cancel(self) -> None:
        self._cancelled = True
        if self._job is None:
            return
        try:
            self._job.remove()
        except JobLookupError:
            logger.debug("Tick job %s already removed", self._job.id)
        self._job = None


def scheduler_ticker_factory(scheduler: AsyncIOScheduler) -> TickerFactory:
    """Factory that places every new ticker on ``scheduler``."""
    return partial(SchedulerTicker, scheduler=scheduler)
