import logging
from collections.abc import Callable
from datetime import datetime

from sqlmodel import Session

from pacer.gateway import Gateway
from pacer.services.notifier import Notifier
from pacer.services.runner import RunnerStatus, SessionRunner
from pacer.services.ticker import TickerFactory

logger = logging.getLogger(__name__)


class RunnerRegistry:
    """Holds the live runners started through the API, keyed by workout id.

    Each attempt gets its own runner and its own database session; both are
    dropped together on ``discard``. Runners that have stopped are dropped
    when the next run starts.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ticker_factory: TickerFactory,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._session_factory = session_factory
        self._ticker_factory = ticker_factory
        self._notifier = notifier
        self._clock = clock
        self._runners: dict[int, tuple[SessionRunner, Session]] = {}

    def start(self, session_id: int, program_id: int | None = None) -> SessionRunner:
        self.evict_stopped()
        db = self._session_factory()
        runner = SessionRunner(
            Gateway(db),
            ticker_factory=self._ticker_factory,
            notifier=self._notifier,
            clock=self._clock,
        )
        try:
            workout_id = runner.initialize(session_id, program_id)
        except Exception:
            db.close()
            raise
        self._runners[workout_id] = (runner, db)
        return runner

    def get(self, workout_id: int) -> SessionRunner | None:
        entry = self._runners.get(workout_id)
        return entry[0] if entry else None

    def discard(self, workout_id: int) -> bool:
        entry = self._runners.pop(workout_id, None)
        if entry is None:
            return False
        runner, db = entry
        runner.reset()
        db.close()
        logger.info("Runner for workout %s discarded", workout_id)
        return True

    def evict_stopped(self) -> int:
        """Discard runners that can no longer tick: finished or stopped idle."""
        stopped = [
            workout_id
            for workout_id, (runner, _) in self._runners.items()
            if runner.status is RunnerStatus.IDLE
        ]
        for workout_id in stopped:
            self.discard(workout_id)
        return len(stopped)

    def close_all(self) -> None:
        for workout_id in list(self._runners):
            self.discard(workout_id)
