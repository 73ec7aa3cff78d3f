"""Session definition model.

Turns a stored session plus its ordered session-exercises into what the
runner executes: one mode, one mode configuration and one list of exercise
descriptors whose targets only carry the fields that matter in that mode.

The mode configuration lives on the session row as an opaque JSON blob::

    {"typeConfig": {"hiit": {"workSeconds": 20, "restSeconds": 10, "totalDurationSeconds": 600}}}

Only the sub-object matching the session's declared type is read. When it is
missing, unparsable or invalid the session runs free-form.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from pacer.errors import NotFoundError
from pacer.gateway import Gateway
from pacer.models import Exercise, SessionExercise, SessionType

logger = logging.getLogger(__name__)

DEFAULT_EMOM_INTERVAL_SECONDS = 60


class RunnerMode(str, Enum):
    DEFAULT = "DEFAULT"
    AMRAP = "AMRAP"
    HIIT = "HIIT"
    EMOM = "EMOM"


# ---------------------------------------------------------------------------
# Mode configuration
# ---------------------------------------------------------------------------


class _ModeConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class DefaultConfig(_ModeConfig):
    pass


class AmrapConfig(_ModeConfig):
    duration_seconds: int = Field(alias="durationSeconds", ge=1)


class HiitConfig(_ModeConfig):
    work_seconds: int = Field(alias="workSeconds", ge=1)
    rest_seconds: int = Field(default=0, alias="restSeconds", ge=0)
    total_duration_seconds: int = Field(alias="totalDurationSeconds", ge=1)


class EmomConfig(_ModeConfig):
    interval_seconds: int = Field(
        default=DEFAULT_EMOM_INTERVAL_SECONDS, alias="intervalSeconds", ge=1
    )


ModeConfig = DefaultConfig | AmrapConfig | HiitConfig | EmomConfig

_CONFIG_BY_TYPE: dict[SessionType, tuple[str, type[_ModeConfig], RunnerMode]] = {
    SessionType.AMRAP: ("amrap", AmrapConfig, RunnerMode.AMRAP),
    SessionType.HIIT: ("hiit", HiitConfig, RunnerMode.HIIT),
    SessionType.EMOM: ("emom", EmomConfig, RunnerMode.EMOM),
}


def parse_mode_config(
    session_type: SessionType | str, config_json: str | None
) -> tuple[RunnerMode, ModeConfig]:
    """Return the runner mode and its configuration for a session row.

    Never raises: anything that does not describe the declared mode falls
    back to ``(RunnerMode.DEFAULT, DefaultConfig())``.
    """
    entry = _CONFIG_BY_TYPE.get(session_type)
    if entry is None or not config_json:
        return RunnerMode.DEFAULT, DefaultConfig()

    key, config_cls, mode = entry
    try:
        raw = json.loads(config_json)["typeConfig"][key]
        config = config_cls.model_validate(raw)
    except (ValueError, KeyError, TypeError) as exc:
        # json.JSONDecodeError and pydantic's ValidationError are both ValueErrors
        logger.debug("Ignoring %s configuration, running free-form: %s", key, exc)
        return RunnerMode.DEFAULT, DefaultConfig()
    return mode, config


# ---------------------------------------------------------------------------
# Exercise targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetTargets:
    """Targets for free-form and AMRAP sessions."""

    sets: int | None = None
    target_reps: int | None = None
    target_duration_seconds: int | None = None
    rest_seconds: int | None = None  # rest after each completed set


@dataclass(frozen=True)
class IntervalTargets:
    work_seconds: int | None = None
    rest_seconds: int | None = None


@dataclass(frozen=True)
class EmomTargets:
    interval_seconds: int | None = None


Targets = SetTargets | IntervalTargets | EmomTargets


def _targets_for(mode: RunnerMode, se: SessionExercise) -> Targets:
    if mode is RunnerMode.HIIT:
        return IntervalTargets(work_seconds=se.work_seconds, rest_seconds=se.rest_seconds)
    if mode is RunnerMode.EMOM:
        return EmomTargets(interval_seconds=se.emom_interval_seconds)
    rest = se.rest_seconds_between_sets
    if rest is None:
        rest = se.rest_seconds
    return SetTargets(
        sets=se.sets,
        target_reps=se.target_reps,
        target_duration_seconds=se.target_duration_seconds,
        rest_seconds=rest,
    )


def exercise_name(
    custom_name: str | None, exercise: Exercise | None, position: int
) -> str:
    """Custom name, else the linked exercise's name, else a positional placeholder."""
    if custom_name:
        return custom_name
    if exercise is not None and exercise.name:
        return exercise.name
    return f"Exercise {position + 1}"


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExerciseDefinition:
    session_exercise_id: int
    exercise_id: int | None
    name: str
    order_index: int
    targets: Targets
    category: str | None = None
    description: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SessionDefinition:
    session_id: int
    name: str
    session_type: SessionType
    mode: RunnerMode
    config: ModeConfig
    exercises: list[ExerciseDefinition] = field(default_factory=list)


def resolve(gateway: Gateway, session_id: int) -> SessionDefinition:
    """Load a session and describe how it runs.

    Raises NotFoundError when the session does not exist.
    """
    training_session = gateway.get_session(session_id)
    if training_session is None:
        raise NotFoundError("Session", session_id)

    mode, config = parse_mode_config(training_session.type, training_session.config_json)

    exercises: list[ExerciseDefinition] = []
    rows = gateway.list_session_exercises_with_details(session_id)
    for position, (se, exercise) in enumerate(rows):
        exercises.append(
            ExerciseDefinition(
                session_exercise_id=se.id,
                exercise_id=se.exercise_id,
                name=exercise_name(se.custom_name, exercise, position),
                order_index=se.order_index,
                targets=_targets_for(mode, se),
                category=exercise.category if exercise else None,
                description=exercise.description if exercise else None,
                notes=se.notes,
            )
        )

    return SessionDefinition(
        session_id=session_id,
        name=training_session.name,
        session_type=SessionType(training_session.type),
        mode=mode,
        config=config,
        exercises=exercises,
    )
