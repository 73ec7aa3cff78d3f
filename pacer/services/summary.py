"""Summary aggregator.

Rebuilds a workout's per-exercise totals from the durable set rows alone, so
history reads the same after a restart as it did right after the run. It
never looks at the totals the runner wrote on finish, and it never writes.
Summaries read while a run is still live reflect in-progress data.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from pacer.gateway import Gateway
from pacer.models import Workout, WorkoutSet
from pacer.services.definition import RunnerMode, exercise_name, parse_mode_config


def set_totals(sets: Sequence[WorkoutSet]) -> tuple[int, int]:
    """Return (total reps, total duration seconds); missing values count as 0."""
    total_reps = sum(s.reps or 0 for s in sets)
    total_duration = sum(s.duration_seconds or 0 for s in sets)
    return total_reps, total_duration


@dataclass
class ExerciseSummary:
    workout_exercise_id: int
    name: str
    order_index: int
    total_reps: int
    total_duration_seconds: int
    set_count: int


@dataclass
class WorkoutSummary:
    workout_id: int
    session_id: int | None
    session_name: str | None
    mode: RunnerMode | None
    started_at: datetime
    ended_at: datetime | None
    total_time_seconds: int | None
    completed: bool
    notes: str | None
    exercises: list[ExerciseSummary] = field(default_factory=list)

    @property
    def total_reps(self) -> int:
        return sum(ex.total_reps for ex in self.exercises)

    @property
    def total_duration_seconds(self) -> int:
        return sum(ex.total_duration_seconds for ex in self.exercises)


def _summarize(gateway: Gateway, workout: Workout) -> WorkoutSummary:
    session_name = None
    mode = None
    if workout.session_id is not None:
        training_session = gateway.get_session(workout.session_id)
        if training_session is not None:
            session_name = training_session.name
            mode, _ = parse_mode_config(training_session.type, training_session.config_json)

    exercises: list[ExerciseSummary] = []
    for position, we in enumerate(gateway.list_workout_exercises(workout.id)):
        custom_name = None
        exercise_id = we.exercise_id
        if we.session_exercise_id is not None:
            se = gateway.get_session_exercise(we.session_exercise_id)
            if se is not None:
                custom_name = se.custom_name
                exercise_id = se.exercise_id if se.exercise_id is not None else exercise_id
        exercise = gateway.get_exercise(exercise_id) if exercise_id is not None else None

        sets = gateway.list_workout_sets(we.id)
        total_reps, total_duration = set_totals(sets)
        exercises.append(
            ExerciseSummary(
                workout_exercise_id=we.id,
                name=exercise_name(custom_name, exercise, position),
                order_index=we.order_index,
                total_reps=total_reps,
                total_duration_seconds=total_duration,
                set_count=len(sets),
            )
        )

    return WorkoutSummary(
        workout_id=workout.id,
        session_id=workout.session_id,
        session_name=session_name,
        mode=mode,
        started_at=workout.started_at,
        ended_at=workout.ended_at,
        total_time_seconds=workout.total_time_seconds,
        completed=workout.completed,
        notes=workout.notes,
        exercises=exercises,
    )


def summarize_workout(gateway: Gateway, workout_id: int) -> WorkoutSummary | None:
    """Summary of one workout, or None when there is nothing to show."""
    workout = gateway.get_workout(workout_id)
    if workout is None:
        return None
    return _summarize(gateway, workout)


def summarize_last_workout(gateway: Gateway, session_id: int) -> WorkoutSummary | None:
    """Summary of the most recent workout run from a session, or None."""
    workout = gateway.find_last_workout_for_session(session_id)
    if workout is None:
        return None
    return _summarize(gateway, workout)
