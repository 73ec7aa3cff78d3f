import json
from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlmodel import SQLModel

from pacer.dependencies import GatewayDep
from pacer.gateway import Gateway
from pacer.models import SessionExercise, SessionType, TrainingSession
from pacer.routers.workouts import SummaryRead, build_summary_read
from pacer.services.definition import RunnerMode, exercise_name, parse_mode_config
from pacer.services.summary import summarize_last_workout

router = APIRouter()


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SessionRead(SQLModel):
    id: int
    name: str
    type: SessionType
    mode: RunnerMode
    config_json: str | None
    planned_at: datetime | None
    repeat_rule: str | None
    notification_enabled: bool
    notification_offset_minutes: int | None
    timezone: str | None


class SessionExerciseRead(SQLModel):
    id: int
    exercise_id: int | None
    custom_name: str | None
    name: str
    order_index: int
    sets: int | None
    target_reps: int | None
    target_duration_seconds: int | None
    rest_seconds_between_sets: int | None
    work_seconds: int | None
    rest_seconds: int | None
    emom_interval_seconds: int | None
    notes: str | None


class SessionDetail(SessionRead):
    exercises: list[SessionExerciseRead]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SessionCreate(SQLModel):
    name: str
    type: SessionType = SessionType.CUSTOM
    config: dict[str, Any] | None = None  # {"typeConfig": {...}}
    planned_at: datetime | None = None
    repeat_rule: str | None = None
    notification_enabled: bool = False
    notification_offset_minutes: int | None = None
    timezone: str | None = None


class SessionUpdate(SQLModel):
    name: str | None = None
    type: SessionType | None = None
    config: dict[str, Any] | None = None
    planned_at: datetime | None = None
    repeat_rule: str | None = None
    notification_enabled: bool | None = None
    notification_offset_minutes: int | None = None
    timezone: str | None = None


class SessionExerciseCreate(SQLModel):
    exercise_id: int | None = None
    custom_name: str | None = None
    sets: int | None = None
    target_reps: int | None = None
    target_duration_seconds: int | None = None
    rest_seconds_between_sets: int | None = None
    work_seconds: int | None = None
    rest_seconds: int | None = None
    emom_interval_seconds: int | None = None
    notes: str | None = None


class SessionExerciseUpdate(SessionExerciseCreate):
    pass


class OrderBody(SQLModel):
    ids: list[int]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_fields(body: SessionCreate | SessionUpdate) -> dict[str, Any]:
    fields = body.model_dump(exclude_unset=True)
    if "config" in fields:
        config = fields.pop("config")
        fields["config_json"] = json.dumps(config) if config is not None else None
    return fields


def _build_session_read(training_session: TrainingSession) -> SessionRead:
    mode, _ = parse_mode_config(training_session.type, training_session.config_json)
    return SessionRead(**training_session.model_dump(), mode=mode)


def _build_session_detail(training_session: TrainingSession, gateway: Gateway) -> SessionDetail:
    rows = gateway.list_session_exercises_with_details(training_session.id)
    exercises = [
        SessionExerciseRead(
            **se.model_dump(exclude={"session_id"}),
            name=exercise_name(se.custom_name, exercise, position),
        )
        for position, (se, exercise) in enumerate(rows)
    ]
    return SessionDetail(
        **_build_session_read(training_session).model_dump(), exercises=exercises
    )


def _get_session_or_404(id: int, gateway: Gateway) -> TrainingSession:
    training_session = gateway.get_session(id)
    if training_session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return training_session


def _get_session_exercise_or_404(id: int, se_id: int, gateway: Gateway) -> SessionExercise:
    se = gateway.get_session_exercise(se_id)
    if se is None or se.session_id != id:
        raise HTTPException(status_code=404, detail="SessionExercise not found")
    return se


def _verify_exercise_exists(exercise_id: int | None, gateway: Gateway) -> None:
    if exercise_id is not None and gateway.get_exercise(exercise_id) is None:
        raise HTTPException(status_code=404, detail="Exercise not found")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/", response_model=list[SessionRead])
def list_sessions(gateway: GatewayDep):
    return [_build_session_read(ts) for ts in gateway.list_sessions()]


@router.post("/", response_model=SessionDetail, status_code=201)
def create_session(body: SessionCreate, gateway: GatewayDep):
    training_session = gateway.create_session(TrainingSession(**_session_fields(body)))
    return _build_session_detail(training_session, gateway)


@router.get("/{id}", response_model=SessionDetail)
def get_session(id: int, gateway: GatewayDep):
    return _build_session_detail(_get_session_or_404(id, gateway), gateway)


@router.patch("/{id}", response_model=SessionDetail)
def update_session(id: int, body: SessionUpdate, gateway: GatewayDep):
    training_session = _get_session_or_404(id, gateway)
    training_session = gateway.update_session(training_session, _session_fields(body))
    return _build_session_detail(training_session, gateway)


@router.delete("/{id}", status_code=204)
def delete_session(id: int, gateway: GatewayDep):
    gateway.delete_session(_get_session_or_404(id, gateway))


@router.post("/{id}/exercises", response_model=SessionExerciseRead, status_code=201)
def add_session_exercise(id: int, body: SessionExerciseCreate, gateway: GatewayDep):
    _get_session_or_404(id, gateway)
    _verify_exercise_exists(body.exercise_id, gateway)
    se = gateway.add_session_exercise(SessionExercise(session_id=id, **body.model_dump()))
    exercise = gateway.get_exercise(se.exercise_id) if se.exercise_id is not None else None
    return SessionExerciseRead(
        **se.model_dump(exclude={"session_id"}),
        name=exercise_name(se.custom_name, exercise, se.order_index),
    )


@router.patch("/{id}/exercises/{se_id}", response_model=SessionDetail)
def update_session_exercise(
    id: int, se_id: int, body: SessionExerciseUpdate, gateway: GatewayDep
):
    se = _get_session_exercise_or_404(id, se_id, gateway)
    _verify_exercise_exists(body.exercise_id, gateway)
    gateway.update_session_exercise(se, body.model_dump(exclude_unset=True))
    return _build_session_detail(_get_session_or_404(id, gateway), gateway)


@router.delete("/{id}/exercises/{se_id}", status_code=204)
def remove_session_exercise(id: int, se_id: int, gateway: GatewayDep):
    gateway.remove_session_exercise(_get_session_exercise_or_404(id, se_id, gateway))


@router.put("/{id}/exercises/order", response_model=SessionDetail)
def reorder_session_exercises(id: int, body: OrderBody, gateway: GatewayDep):
    training_session = _get_session_or_404(id, gateway)
    try:
        gateway.reorder_session_exercises(id, body.ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _build_session_detail(training_session, gateway)


@router.get("/{id}/last-summary", response_model=SummaryRead)
def get_last_summary(id: int, gateway: GatewayDep):
    """Summary of the latest workout run from this session; ``workout`` is null if none."""
    _get_session_or_404(id, gateway)
    return build_summary_read(summarize_last_workout(gateway, id))
