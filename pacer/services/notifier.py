import logging
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class RunnerEvent(str, Enum):
    STARTED = "started"
    TICK = "tick"
    PHASE_CHANGED = "phase_changed"
    SET_LOGGED = "set_logged"
    FINISHED = "finished"


class Notifier(Protocol):
    """Fire-and-forget sink for audio/haptic cues."""

    def notify(self, event: RunnerEvent, runner: Any) -> None: ...


class LoggingNotifier:
    def notify(self, event: RunnerEvent, runner: Any) -> None:
        if event is RunnerEvent.TICK:
            return
        logger.debug("Workout %s: %s", runner.workout_id, event.value)
