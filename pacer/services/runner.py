"""Live session runner.

One :class:`SessionRunner` drives one attempt at a session: it owns the
in-memory counters, one tick source, and the workout rows created when the
attempt starts. A single ``tick`` routes on the runner mode, so only one
timing authority is ever active:

* DEFAULT (free-form): elapsed time counts up, sets are completed by hand and
  may be followed by a rest countdown.
* AMRAP: like free-form, under one countdown for the whole session.
* HIIT: work and rest phases alternate; each finished rest logs an interval
  for the current exercise and rotates to the next one.
* EMOM: every interval logs a set for the current exercise and rotates.

Countdowns change state on the tick that brings them to zero. Sets logged
from the tick are best-effort: a storage failure is logged and the rotation
carries on.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlmodel import SQLModel

from pacer.errors import NotFoundError, StorageError
from pacer.gateway import Gateway
from pacer.models import Workout, WorkoutExercise, WorkoutSet
from pacer.services.definition import (
    AmrapConfig,
    DefaultConfig,
    EmomConfig,
    ExerciseDefinition,
    HiitConfig,
    ModeConfig,
    RunnerMode,
    SessionDefinition,
    SetTargets,
    resolve,
)
from pacer.services.notifier import LoggingNotifier, Notifier, RunnerEvent
from pacer.services.summary import set_totals
from pacer.services.ticker import Ticker, TickerFactory

logger = logging.getLogger(__name__)


class RunnerStatus(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    RUNNING = "running"
    RESTING = "resting"


class Phase(str, Enum):
    WORK = "work"
    REST = "rest"


@dataclass
class ExerciseRuntime:
    definition: ExerciseDefinition
    workout_exercise_id: int
    current_set: int = 1
    pending_reps: int = 0
    logged_sets: int = 0
    logged_reps: int = 0
    logged_duration_seconds: int = 0

    @property
    def name(self) -> str:
        return self.definition.name


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class ExerciseState(SQLModel):
    workout_exercise_id: int
    session_exercise_id: int
    name: str
    order_index: int
    current_set: int
    pending_reps: int
    logged_sets: int
    logged_reps: int
    logged_duration_seconds: int


class RunnerState(SQLModel):
    workout_id: int | None
    session_id: int | None
    mode: RunnerMode
    status: RunnerStatus
    current_exercise_index: int
    elapsed_seconds: int
    rest_remaining_seconds: int | None
    phase: Phase | None
    phase_remaining_seconds: int | None
    total_remaining_seconds: int | None
    interval_remaining_seconds: int | None
    exercises: list[ExerciseState]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class SessionRunner:
    def __init__(
        self,
        gateway: Gateway,
        ticker_factory: TickerFactory,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self._ticker_factory = ticker_factory
        self._notifier = notifier or LoggingNotifier()
        self._clock = clock
        self._ticker: Ticker | None = None
        self._clear()

    def _clear(self) -> None:
        self.definition: SessionDefinition | None = None
        self.session_id: int | None = None
        self.workout_id: int | None = None
        self.started_at: datetime | None = None
        self.ended_at: datetime | None = None
        self.mode = RunnerMode.DEFAULT
        self.config: ModeConfig = DefaultConfig()
        self.status = RunnerStatus.IDLE
        self.exercises: list[ExerciseRuntime] = []
        self.current_index = 0
        self.elapsed_seconds = 0
        self.rest_remaining_seconds: int | None = None
        self.phase: Phase | None = None
        self.phase_remaining_seconds: int | None = None
        self.total_remaining_seconds: int | None = None
        self.interval_remaining_seconds: int | None = None

    @property
    def current_exercise(self) -> ExerciseRuntime | None:
        if 0 <= self.current_index < len(self.exercises):
            return self.exercises[self.current_index]
        return None

    @property
    def finished(self) -> bool:
        return self.ended_at is not None

    @property
    def ticking(self) -> bool:
        return self._ticker is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, session_id: int, program_id: int | None = None) -> int:
        """Start a new attempt at a session and return its workout id.

        Every call is a new attempt with its own workout row. The runner is
        left paused; ``toggle`` starts the clock.
        """
        self.reset()
        definition = resolve(self.gateway, session_id)
        started_at = self._clock()
        workout, workout_exercises = self.gateway.start_workout(
            Workout(session_id=session_id, program_id=program_id, started_at=started_at),
            [
                WorkoutExercise(
                    session_exercise_id=ex.session_exercise_id,
                    exercise_id=ex.exercise_id,
                    order_index=ex.order_index,
                )
                for ex in definition.exercises
            ],
        )

        self.definition = definition
        self.session_id = session_id
        self.workout_id = workout.id
        self.started_at = started_at
        self.mode = definition.mode
        self.config = definition.config
        self.exercises = [
            ExerciseRuntime(definition=ex, workout_exercise_id=we.id)
            for ex, we in zip(definition.exercises, workout_exercises)
        ]

        config = self.config
        if isinstance(config, HiitConfig):
            self.phase = Phase.WORK
            self.phase_remaining_seconds = config.work_seconds
            self.total_remaining_seconds = config.total_duration_seconds
        elif isinstance(config, AmrapConfig):
            self.total_remaining_seconds = config.duration_seconds
        elif isinstance(config, EmomConfig):
            self.interval_remaining_seconds = config.interval_seconds

        self.status = RunnerStatus.PAUSED
        logger.info(
            "Workout %s started from session %s (%s, %d exercises)",
            self.workout_id,
            session_id,
            self.mode.value,
            len(self.exercises),
        )
        return self.workout_id

    def toggle(self) -> None:
        """Pause a running attempt or resume a paused one."""
        if self.status in (RunnerStatus.RUNNING, RunnerStatus.RESTING):
            self._stop_ticker()
            self.status = RunnerStatus.PAUSED
        elif self.status is RunnerStatus.PAUSED:
            self._stop_ticker()
            if self.rest_remaining_seconds:
                self.status = RunnerStatus.RESTING
            else:
                self.status = RunnerStatus.RUNNING
            self._ticker = self._ticker_factory(self.tick)
            self._notify(RunnerEvent.STARTED)

    def finish(self, notes: str | None = None) -> int | None:
        """Write final totals, close the workout and stop the clock.

        Totals are recomputed from the stored sets. All writes happen in one
        commit; on StorageError nothing is applied and the runner keeps its
        state so the caller can retry. NotFoundError means the workout rows
        were deleted under the runner: it stops and the error propagates.
        """
        if self.workout_id is None:
            return None
        if self.finished:
            return self.workout_id

        totals = {
            ex.workout_exercise_id: set_totals(
                self.gateway.list_workout_sets(ex.workout_exercise_id)
            )
            for ex in self.exercises
        }
        ended_at = self._clock()
        total_time = max(0, round((ended_at - self.started_at).total_seconds()))
        try:
            self.gateway.complete_workout(self.workout_id, totals, ended_at, total_time, notes)
        except NotFoundError:
            self._stop_ticker()
            self.status = RunnerStatus.IDLE
            self.rest_remaining_seconds = None
            raise

        self._stop_ticker()
        self.status = RunnerStatus.IDLE
        self.ended_at = ended_at
        self.rest_remaining_seconds = None
        logger.info("Workout %s finished after %ss", self.workout_id, total_time)
        self._notify(RunnerEvent.FINISHED)
        return self.workout_id

    def reset(self) -> None:
        """Drop all in-memory state. Stored rows are left as they are."""
        self._stop_ticker()
        self._clear()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def next_exercise(self) -> None:
        if self.mode in (RunnerMode.HIIT, RunnerMode.EMOM):
            return
        if self.current_index < len(self.exercises) - 1:
            self.current_index += 1

    def prev_exercise(self) -> None:
        if self.mode in (RunnerMode.HIIT, RunnerMode.EMOM):
            return
        if self.current_index > 0:
            self.current_index -= 1

    def add_rep(self, delta: int = 1) -> None:
        ex = self.current_exercise
        if ex is None:
            return
        ex.pending_reps = max(0, ex.pending_reps + delta)

    def complete_set(self, weight_kg: float | None = None) -> WorkoutSet | None:
        """Record the current exercise's set and start its rest, if it has one.

        Only meaningful in free-form and AMRAP sessions. StorageError
        propagates and leaves the counters untouched.
        """
        if self.mode in (RunnerMode.HIIT, RunnerMode.EMOM):
            return None
        ex = self.current_exercise
        if ex is None or self.workout_id is None or self.finished:
            return None

        targets = ex.definition.targets
        rest = targets.rest_seconds if isinstance(targets, SetTargets) else None
        reps = ex.pending_reps if ex.pending_reps > 0 else None
        workout_set = self.gateway.add_workout_set(
            WorkoutSet(
                workout_exercise_id=ex.workout_exercise_id,
                set_number=ex.current_set,
                reps=reps,
                weight_kg=weight_kg,
                rest_seconds=rest or None,
            )
        )

        ex.current_set += 1
        ex.pending_reps = 0
        ex.logged_sets += 1
        ex.logged_reps += reps or 0
        self._notify(RunnerEvent.SET_LOGGED)

        if rest and rest > 0:
            self.rest_remaining_seconds = rest
            if self.status is RunnerStatus.RUNNING:
                self.status = RunnerStatus.RESTING
                self._notify(RunnerEvent.PHASE_CHANGED)
        return workout_set

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Advance the clock by one second."""
        if self.status not in (RunnerStatus.RUNNING, RunnerStatus.RESTING):
            return
        if self.mode is RunnerMode.HIIT:
            self._tick_hiit()
        elif self.mode is RunnerMode.EMOM:
            self._tick_emom()
        else:
            self._tick_sets()
        if self.status is not RunnerStatus.IDLE:
            self._notify(RunnerEvent.TICK)

    def _tick_sets(self) -> None:
        if self.status is RunnerStatus.RESTING:
            self.rest_remaining_seconds = max(0, (self.rest_remaining_seconds or 0) - 1)
            if self.rest_remaining_seconds == 0:
                self.status = RunnerStatus.RUNNING
                self.rest_remaining_seconds = None
                self._notify(RunnerEvent.PHASE_CHANGED)
            return

        if self.mode is RunnerMode.AMRAP:
            self.total_remaining_seconds = max(0, self.total_remaining_seconds - 1)
            if self.total_remaining_seconds == 0:
                self._auto_finish()
        else:
            self.elapsed_seconds += 1

    def _tick_hiit(self) -> None:
        config: HiitConfig = self.config
        if self.phase_remaining_seconds > 0:
            self.phase_remaining_seconds -= 1
            self.total_remaining_seconds = max(0, self.total_remaining_seconds - 1)

        if self.phase is Phase.WORK and self.phase_remaining_seconds <= 0:
            # The interval is logged once its rest is over.
            self.phase = Phase.REST
            self.phase_remaining_seconds = config.rest_seconds
            self._notify(RunnerEvent.PHASE_CHANGED)

        if self.phase is Phase.REST and self.phase_remaining_seconds <= 0:
            ex = self.current_exercise
            if ex is not None:
                self._log_interval(
                    ex, duration_seconds=config.work_seconds, rest_seconds=config.rest_seconds
                )
                self._rotate()
            self.phase = Phase.WORK
            self.phase_remaining_seconds = config.work_seconds
            self._notify(RunnerEvent.PHASE_CHANGED)

        if self.total_remaining_seconds <= 0:
            self._auto_finish()

    def _tick_emom(self) -> None:
        config: EmomConfig = self.config
        if self.interval_remaining_seconds > 0:
            self.interval_remaining_seconds -= 1
        if self.interval_remaining_seconds <= 0:
            ex = self.current_exercise
            if ex is not None:
                self._log_interval(ex)
                self._rotate()
            self.interval_remaining_seconds = config.interval_seconds
            self._notify(RunnerEvent.PHASE_CHANGED)

    def _rotate(self) -> None:
        if self.exercises:
            self.current_index = (self.current_index + 1) % len(self.exercises)

    def _log_interval(
        self,
        ex: ExerciseRuntime,
        duration_seconds: int | None = None,
        rest_seconds: int | None = None,
    ) -> None:
        set_number = ex.current_set
        ex.current_set += 1
        try:
            self.gateway.add_workout_set(
                WorkoutSet(
                    workout_exercise_id=ex.workout_exercise_id,
                    set_number=set_number,
                    duration_seconds=duration_seconds,
                    rest_seconds=rest_seconds,
                )
            )
        except StorageError:
            logger.warning(
                "Could not record set %s of %r in workout %s; continuing",
                set_number,
                ex.name,
                self.workout_id,
                exc_info=True,
            )
            return
        ex.logged_sets += 1
        ex.logged_duration_seconds += duration_seconds or 0
        self._notify(RunnerEvent.SET_LOGGED)

    def _auto_finish(self) -> None:
        try:
            self.finish()
        except StorageError:
            logger.warning(
                "Automatic finish of workout %s failed; retrying on next tick",
                self.workout_id,
                exc_info=True,
            )
        except NotFoundError as exc:
            logger.error("Workout %s stopped without finishing: %s", self.workout_id, exc)

    def _notify(self, event: RunnerEvent) -> None:
        try:
            self._notifier.notify(event, self)
        except Exception:
            logger.warning("Notifier failed on %s", event.value, exc_info=True)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def state(self) -> RunnerState:
        return RunnerState(
            workout_id=self.workout_id,
            session_id=self.session_id,
            mode=self.mode,
            status=self.status,
            current_exercise_index=self.current_index,
            elapsed_seconds=self.elapsed_seconds,
            rest_remaining_seconds=self.rest_remaining_seconds,
            phase=self.phase,
            phase_remaining_seconds=self.phase_remaining_seconds,
            total_remaining_seconds=self.total_remaining_seconds,
            interval_remaining_seconds=self.interval_remaining_seconds,
            exercises=[
                ExerciseState(
                    workout_exercise_id=ex.workout_exercise_id,
                    session_exercise_id=ex.definition.session_exercise_id,
                    name=ex.name,
                    order_index=ex.definition.order_index,
                    current_set=ex.current_set,
                    pending_reps=ex.pending_reps,
                    logged_sets=ex.logged_sets,
                    logged_reps=ex.logged_reps,
                    logged_duration_seconds=ex.logged_duration_seconds,
                )
                for ex in self.exercises
            ],
        )
