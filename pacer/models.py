from datetime import datetime
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class SessionType(str, Enum):
    AMRAP = "AMRAP"
    HIIT = "HIIT"
    EMOM = "EMOM"
    CUSTOM = "CUSTOM"


class Exercise(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    category: str | None = None
    description: str | None = None
    is_custom: bool = True
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class TrainingSession(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str
    type: SessionType = SessionType.CUSTOM
    config_json: str | None = None  # {"typeConfig": {"hiit": {...}}} etc.
    planned_at: datetime | None = None
    repeat_rule: str | None = None
    notification_enabled: bool = False
    notification_offset_minutes: int | None = None
    timezone: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class SessionExercise(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="trainingsession.id", index=True)
    exercise_id: int | None = Field(default=None, foreign_key="exercise.id")
    custom_name: str | None = None
    order_index: int = 0
    sets: int | None = None
    target_reps: int | None = None
    target_duration_seconds: int | None = None
    rest_seconds_between_sets: int | None = None
    work_seconds: int | None = None
    rest_seconds: int | None = None
    emom_interval_seconds: int | None = None
    notes: str | None = None


class Program(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str
    description: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ProgramSession(SQLModel, table=True):
    # A session may appear several times in the same program.
    id: int | None = Field(default=None, primary_key=True)
    program_id: int = Field(foreign_key="program.id", index=True)
    session_id: int = Field(foreign_key="trainingsession.id", index=True)
    order_index: int = 0
    created_at: datetime = Field(default_factory=datetime.now)


class Workout(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    program_id: int | None = Field(default=None, foreign_key="program.id")
    session_id: int | None = Field(default=None, foreign_key="trainingsession.id", index=True)
    started_at: datetime = Field(default_factory=datetime.now, index=True)
    ended_at: datetime | None = None
    total_time_seconds: int | None = None
    completed: bool = False
    notes: str | None = None


class WorkoutExercise(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    workout_id: int = Field(foreign_key="workout.id", index=True)
    session_exercise_id: int | None = Field(default=None, foreign_key="sessionexercise.id")
    exercise_id: int | None = Field(default=None, foreign_key="exercise.id")
    order_index: int = 0
    total_reps: int | None = None
    total_duration_seconds: int | None = None


class WorkoutSet(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("workout_exercise_id", "set_number"),)

    id: int | None = Field(default=None, primary_key=True)
    workout_exercise_id: int = Field(foreign_key="workoutexercise.id", index=True)
    set_number: int
    reps: int | None = None
    weight_kg: float | None = None
    duration_seconds: int | None = None
    rest_seconds: int | None = None
