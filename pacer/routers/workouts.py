from datetime import datetime

from fastapi import APIRouter, HTTPException
from sqlmodel import SQLModel

from pacer.dependencies import GatewayDep, RegistryDep
from pacer.gateway import Gateway
from pacer.models import Workout
from pacer.services.definition import RunnerMode
from pacer.services.summary import WorkoutSummary, summarize_workout

router = APIRouter()


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SetRead(SQLModel):
    id: int
    set_number: int
    reps: int | None
    weight_kg: float | None
    duration_seconds: int | None
    rest_seconds: int | None


class WorkoutExerciseRead(SQLModel):
    id: int
    session_exercise_id: int | None
    exercise_id: int | None
    order_index: int
    total_reps: int | None
    total_duration_seconds: int | None
    sets: list[SetRead]


class WorkoutRead(SQLModel):
    id: int
    program_id: int | None
    session_id: int | None
    started_at: datetime
    ended_at: datetime | None
    total_time_seconds: int | None
    completed: bool
    notes: str | None


class WorkoutDetail(WorkoutRead):
    workout_exercises: list[WorkoutExerciseRead]


class ExerciseSummaryRead(SQLModel):
    workout_exercise_id: int
    name: str
    order_index: int
    total_reps: int
    total_duration_seconds: int
    set_count: int


class WorkoutSummaryRead(SQLModel):
    workout_id: int
    session_id: int | None
    session_name: str | None
    mode: RunnerMode | None
    started_at: datetime
    ended_at: datetime | None
    total_time_seconds: int | None
    completed: bool
    notes: str | None
    total_reps: int
    total_duration_seconds: int
    exercises: list[ExerciseSummaryRead]


class SummaryRead(SQLModel):
    workout: WorkoutSummaryRead | None  # None: nothing to show


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_summary_read(summary: WorkoutSummary | None) -> SummaryRead:
    if summary is None:
        return SummaryRead(workout=None)
    return SummaryRead(
        workout=WorkoutSummaryRead(
            workout_id=summary.workout_id,
            session_id=summary.session_id,
            session_name=summary.session_name,
            mode=summary.mode,
            started_at=summary.started_at,
            ended_at=summary.ended_at,
            total_time_seconds=summary.total_time_seconds,
            completed=summary.completed,
            notes=summary.notes,
            total_reps=summary.total_reps,
            total_duration_seconds=summary.total_duration_seconds,
            exercises=[
                ExerciseSummaryRead(
                    workout_exercise_id=ex.workout_exercise_id,
                    name=ex.name,
                    order_index=ex.order_index,
                    total_reps=ex.total_reps,
                    total_duration_seconds=ex.total_duration_seconds,
                    set_count=ex.set_count,
                )
                for ex in summary.exercises
            ],
        )
    )


def _build_workout_detail(workout: Workout, gateway: Gateway) -> WorkoutDetail:
    workout_exercises = [
        WorkoutExerciseRead(
            **we.model_dump(exclude={"workout_id"}),
            sets=[
                SetRead(**s.model_dump(exclude={"workout_exercise_id"}))
                for s in gateway.list_workout_sets(we.id)
            ],
        )
        for we in gateway.list_workout_exercises(workout.id)
    ]
    return WorkoutDetail(**workout.model_dump(), workout_exercises=workout_exercises)


def _get_workout_or_404(id: int, gateway: Gateway) -> Workout:
    workout = gateway.get_workout(id)
    if workout is None:
        raise HTTPException(status_code=404, detail="Workout not found")
    return workout


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[WorkoutRead])
def list_workouts(gateway: GatewayDep):
    return gateway.list_workouts()


@router.get("/{id}", response_model=WorkoutDetail)
def get_workout(id: int, gateway: GatewayDep):
    return _build_workout_detail(_get_workout_or_404(id, gateway), gateway)


@router.get("/{id}/summary", response_model=SummaryRead)
def get_workout_summary(id: int, gateway: GatewayDep):
    """Per-exercise totals recomputed from the stored sets; ``workout`` is null if absent."""
    return build_summary_read(summarize_workout(gateway, id))


@router.delete("/{id}", status_code=204)
async def delete_workout(id: int, gateway: GatewayDep, registry: RegistryDep):
    """Delete a workout and its history, stopping its live run if there is one."""
    # Runner state is only touched on the loop thread
    registry.discard(id)
    gateway.delete_workout(_get_workout_or_404(id, gateway))
