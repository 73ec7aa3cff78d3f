"""Persistence gateway.

Record-shaped create/read/update/delete operations over the pacer tables plus
the join and ordering queries the runner, the session definition model and
the summary aggregator need. No business rules live here: callers decide what
a missing record means.

Every database error surfaces as :class:`~pacer.errors.StorageError`, after
the session has been rolled back so nothing from the failed unit of work is
applied.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, func, select

from pacer.errors import NotFoundError, StorageError
from pacer.models import (
    Exercise,
    Program,
    ProgramSession,
    SessionExercise,
    TrainingSession,
    Workout,
    WorkoutExercise,
    WorkoutSet,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=SQLModel)


class Gateway:
    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _storage(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Storage operation failed: %s", exc)
            raise StorageError(str(exc)) from exc

    def _get(self, model: type[RecordT], id: int) -> RecordT | None:
        with self._storage():
            return self.session.get(model, id)

    def _save(self, record: RecordT) -> RecordT:
        with self._storage():
            self.session.add(record)
            self.session.commit()
            self.session.refresh(record)
        return record

    def _update(self, record: RecordT, changes: dict[str, Any]) -> RecordT:
        for key, value in changes.items():
            setattr(record, key, value)
        if hasattr(record, "updated_at"):
            record.updated_at = datetime.now()
        return self._save(record)

    # ------------------------------------------------------------------
    # Exercises
    # ------------------------------------------------------------------

    def create_exercise(self, exercise: Exercise) -> Exercise:
        return self._save(exercise)

    def get_exercise(self, id: int) -> Exercise | None:
        return self._get(Exercise, id)

    def list_exercises(self) -> list[Exercise]:
        with self._storage():
            return list(self.session.exec(select(Exercise).order_by(Exercise.name)).all())

    def update_exercise(self, exercise: Exercise, changes: dict[str, Any]) -> Exercise:
        return self._update(exercise, changes)

    def delete_exercise(self, exercise: Exercise) -> None:
        """Delete an exercise, nulling references to it instead of cascading."""
        with self._storage():
            for se in self.session.exec(
                select(SessionExercise).where(SessionExercise.exercise_id == exercise.id)
            ).all():
                se.exercise_id = None
                self.session.add(se)
            for we in self.session.exec(
                select(WorkoutExercise).where(WorkoutExercise.exercise_id == exercise.id)
            ).all():
                we.exercise_id = None
                self.session.add(we)
            self.session.delete(exercise)
            self.session.commit()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, training_session: TrainingSession) -> TrainingSession:
        return self._save(training_session)

    def get_session(self, id: int) -> TrainingSession | None:
        return self._get(TrainingSession, id)

    def list_sessions(self) -> list[TrainingSession]:
        with self._storage():
            return list(
                self.session.exec(select(TrainingSession).order_by(TrainingSession.name)).all()
            )

    def update_session(
        self, training_session: TrainingSession, changes: dict[str, Any]
    ) -> TrainingSession:
        return self._update(training_session, changes)

    def delete_session(self, training_session: TrainingSession) -> None:
        """Delete a session with its session-exercises and program links.

        Workouts already run from the session are kept; they lose their
        session reference.
        """
        with self._storage():
            session_exercises = self.session.exec(
                select(SessionExercise).where(SessionExercise.session_id == training_session.id)
            ).all()
            for se in session_exercises:
                self._detach_workout_exercises(se.id)
                self.session.delete(se)
            for link in self.session.exec(
                select(ProgramSession).where(ProgramSession.session_id == training_session.id)
            ).all():
                self.session.delete(link)
            for workout in self.session.exec(
                select(Workout).where(Workout.session_id == training_session.id)
            ).all():
                workout.session_id = None
                self.session.add(workout)
            self.session.delete(training_session)
            self.session.commit()

    # ------------------------------------------------------------------
    # Session exercises
    # ------------------------------------------------------------------

    def _session_exercises(self, session_id: int) -> Sequence[SessionExercise]:
        return self.session.exec(
            select(SessionExercise)
            .where(SessionExercise.session_id == session_id)
            .order_by(SessionExercise.order_index, SessionExercise.id)
        ).all()

    def _detach_workout_exercises(self, session_exercise_id: int) -> None:
        for we in self.session.exec(
            select(WorkoutExercise).where(
                WorkoutExercise.session_exercise_id == session_exercise_id
            )
        ).all():
            we.session_exercise_id = None
            self.session.add(we)

    def add_session_exercise(self, session_exercise: SessionExercise) -> SessionExercise:
        """Append a session-exercise at the next contiguous order index."""
        with self._storage():
            count = self.session.exec(
                select(func.count(SessionExercise.id)).where(
                    SessionExercise.session_id == session_exercise.session_id
                )
            ).one()
        session_exercise.order_index = count
        return self._save(session_exercise)

    def get_session_exercise(self, id: int) -> SessionExercise | None:
        return self._get(SessionExercise, id)

    def update_session_exercise(
        self, session_exercise: SessionExercise, changes: dict[str, Any]
    ) -> SessionExercise:
        return self._update(session_exercise, changes)

    def remove_session_exercise(self, session_exercise: SessionExercise) -> None:
        session_id = session_exercise.session_id
        with self._storage():
            self._detach_workout_exercises(session_exercise.id)
            self.session.delete(session_exercise)
            self.session.flush()
            for index, se in enumerate(self._session_exercises(session_id)):
                se.order_index = index
                self.session.add(se)
            self.session.commit()

    def reorder_session_exercises(self, session_id: int, ordered_ids: list[int]) -> None:
        """Rewrite order indexes so they follow ``ordered_ids``.

        ``ordered_ids`` must name every session-exercise of the session once.
        """
        with self._storage():
            by_id = {se.id: se for se in self._session_exercises(session_id)}
            if sorted(ordered_ids) != sorted(by_id):
                raise ValueError("Order must list every exercise of the session exactly once")
            for index, se_id in enumerate(ordered_ids):
                by_id[se_id].order_index = index
                self.session.add(by_id[se_id])
            self.session.commit()

    def list_session_exercises_with_details(
        self, session_id: int
    ) -> list[tuple[SessionExercise, Exercise | None]]:
        """Session-exercises joined with their exercise, ordered by index."""
        statement = (
            select(SessionExercise, Exercise)
            .join(Exercise, SessionExercise.exercise_id == Exercise.id, isouter=True)
            .where(SessionExercise.session_id == session_id)
            .order_by(SessionExercise.order_index, SessionExercise.id)
        )
        with self._storage():
            return [(se, exercise) for se, exercise in self.session.exec(statement).all()]

    # ------------------------------------------------------------------
    # Programs
    # ------------------------------------------------------------------

    def create_program(self, program: Program) -> Program:
        return self._save(program)

    def get_program(self, id: int) -> Program | None:
        return self._get(Program, id)

    def list_programs(self) -> list[Program]:
        with self._storage():
            return list(self.session.exec(select(Program).order_by(Program.name)).all())

    def update_program(self, program: Program, changes: dict[str, Any]) -> Program:
        return self._update(program, changes)

    def delete_program(self, program: Program) -> None:
        with self._storage():
            for link in self.session.exec(
                select(ProgramSession).where(ProgramSession.program_id == program.id)
            ).all():
                self.session.delete(link)
            for workout in self.session.exec(
                select(Workout).where(Workout.program_id == program.id)
            ).all():
                workout.program_id = None
                self.session.add(workout)
            self.session.delete(program)
            self.session.commit()

    def add_session_to_program(self, program_id: int, session_id: int) -> ProgramSession:
        with self._storage():
            max_order = self.session.exec(
                select(func.max(ProgramSession.order_index)).where(
                    ProgramSession.program_id == program_id
                )
            ).one()
        next_order = 0 if max_order is None else max_order + 1
        return self._save(
            ProgramSession(program_id=program_id, session_id=session_id, order_index=next_order)
        )

    def get_program_session(self, id: int) -> ProgramSession | None:
        return self._get(ProgramSession, id)

    def remove_program_session(self, link: ProgramSession) -> None:
        with self._storage():
            self.session.delete(link)
            self.session.commit()

    def list_program_sessions(
        self, program_id: int
    ) -> list[tuple[ProgramSession, TrainingSession]]:
        statement = (
            select(ProgramSession, TrainingSession)
            .join(TrainingSession, ProgramSession.session_id == TrainingSession.id)
            .where(ProgramSession.program_id == program_id)
            .order_by(ProgramSession.order_index, ProgramSession.id)
        )
        with self._storage():
            return [(link, ts) for link, ts in self.session.exec(statement).all()]

    # ------------------------------------------------------------------
    # Workouts
    # ------------------------------------------------------------------

    def start_workout(
        self, workout: Workout, workout_exercises: Sequence[WorkoutExercise]
    ) -> tuple[Workout, list[WorkoutExercise]]:
        """Create a workout and its workout-exercises in a single transaction."""
        with self._storage():
            self.session.add(workout)
            self.session.flush()
            for we in workout_exercises:
                we.workout_id = workout.id
                self.session.add(we)
            self.session.commit()
            self.session.refresh(workout)
            for we in workout_exercises:
                self.session.refresh(we)
        return workout, list(workout_exercises)

    def get_workout(self, id: int) -> Workout | None:
        return self._get(Workout, id)

    def list_workouts(self) -> list[Workout]:
        with self._storage():
            return list(
                self.session.exec(
                    select(Workout).order_by(Workout.started_at.desc(), Workout.id.desc())
                ).all()
            )

    def find_last_workout_for_session(self, session_id: int) -> Workout | None:
        with self._storage():
            return self.session.exec(
                select(Workout)
                .where(Workout.session_id == session_id)
                .order_by(Workout.started_at.desc(), Workout.id.desc())
                .limit(1)
            ).first()

    def delete_workout(self, workout: Workout) -> None:
        """Delete WorkoutSets -> WorkoutExercises -> Workout (SQLite has no auto-cascade)."""
        with self._storage():
            workout_exercises = self.session.exec(
                select(WorkoutExercise).where(WorkoutExercise.workout_id == workout.id)
            ).all()
            we_ids = [we.id for we in workout_exercises]
            if we_ids:
                sets = self.session.exec(
                    select(WorkoutSet).where(WorkoutSet.workout_exercise_id.in_(we_ids))
                ).all()
                for s in sets:
                    self.session.delete(s)
                for we in workout_exercises:
                    self.session.delete(we)
            self.session.delete(workout)
            self.session.commit()

    def complete_workout(
        self,
        workout_id: int,
        totals: dict[int, tuple[int, int]],
        ended_at: datetime,
        total_time_seconds: int,
        notes: str | None = None,
    ) -> Workout:
        """Write per-exercise totals and close the workout in one commit.

        ``totals`` maps workout-exercise id to ``(total_reps, total_duration_seconds)``.
        Either every row is updated or none is.
        """
        with self._storage():
            workout = self.session.get(Workout, workout_id)
            if workout is None:
                raise NotFoundError("Workout", workout_id)
            rows = {we_id: self.session.get(WorkoutExercise, we_id) for we_id in totals}
            for we_id, we in rows.items():
                if we is None:
                    raise NotFoundError("WorkoutExercise", we_id)
            for we_id, (total_reps, total_duration) in totals.items():
                we = rows[we_id]
                we.total_reps = total_reps
                we.total_duration_seconds = total_duration
                self.session.add(we)
            workout.ended_at = ended_at
            workout.total_time_seconds = total_time_seconds
            workout.completed = True
            if notes is not None:
                workout.notes = notes
            self.session.add(workout)
            self.session.commit()
            self.session.refresh(workout)
        return workout

    # ------------------------------------------------------------------
    # Workout exercises and sets
    # ------------------------------------------------------------------

    def list_workout_exercises(self, workout_id: int) -> list[WorkoutExercise]:
        with self._storage():
            return list(
                self.session.exec(
                    select(WorkoutExercise)
                    .where(WorkoutExercise.workout_id == workout_id)
                    .order_by(WorkoutExercise.order_index, WorkoutExercise.id)
                ).all()
            )

    def add_workout_set(self, workout_set: WorkoutSet) -> WorkoutSet:
        return self._save(workout_set)

    def list_workout_sets(self, workout_exercise_id: int) -> list[WorkoutSet]:
        with self._storage():
            return list(
                self.session.exec(
                    select(WorkoutSet)
                    .where(WorkoutSet.workout_exercise_id == workout_exercise_id)
                    .order_by(WorkoutSet.set_number)
                ).all()
            )
