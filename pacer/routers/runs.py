"""Live runner endpoints.

Handlers are ``async def`` so they run on the event loop thread, the same
thread the runner's ticker fires on. Runner state is therefore only ever
touched from one thread.

The database calls made here and from tick callbacks are synchronous SQLite
writes, so each one blocks the event loop while it runs. With one local user
and small row counts that is a few milliseconds per request or tick.
"""

from fastapi import APIRouter, HTTPException
from sqlmodel import SQLModel

from pacer.dependencies import RegistryDep
from pacer.errors import NotFoundError, StorageError
from pacer.services.registry import RunnerRegistry
from pacer.services.runner import RunnerState, SessionRunner

router = APIRouter()


class StartBody(SQLModel):
    session_id: int
    program_id: int | None = None


class RepsBody(SQLModel):
    delta: int = 1


class CompleteSetBody(SQLModel):
    weight_kg: float | None = None


class FinishBody(SQLModel):
    notes: str | None = None


def _get_runner_or_404(workout_id: int, registry: RunnerRegistry) -> SessionRunner:
    runner = registry.get(workout_id)
    if runner is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return runner


@router.post("/", response_model=RunnerState, status_code=201)
async def start_run(body: StartBody, registry: RegistryDep):
    try:
        runner = registry.start(body.session_id, body.program_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"Could not start workout: {exc}")
    return runner.state()


@router.get("/{workout_id}", response_model=RunnerState)
async def get_run(workout_id: int, registry: RegistryDep):
    return _get_runner_or_404(workout_id, registry).state()


@router.post("/{workout_id}/toggle", response_model=RunnerState)
async def toggle_run(workout_id: int, registry: RegistryDep):
    runner = _get_runner_or_404(workout_id, registry)
    runner.toggle()
    return runner.state()


@router.post("/{workout_id}/next", response_model=RunnerState)
async def next_exercise(workout_id: int, registry: RegistryDep):
    runner = _get_runner_or_404(workout_id, registry)
    runner.next_exercise()
    return runner.state()


@router.post("/{workout_id}/prev", response_model=RunnerState)
async def prev_exercise(workout_id: int, registry: RegistryDep):
    runner = _get_runner_or_404(workout_id, registry)
    runner.prev_exercise()
    return runner.state()


@router.post("/{workout_id}/reps", response_model=RunnerState)
async def add_rep(workout_id: int, body: RepsBody, registry: RegistryDep):
    runner = _get_runner_or_404(workout_id, registry)
    runner.add_rep(body.delta)
    return runner.state()


@router.post("/{workout_id}/complete-set", response_model=RunnerState)
async def complete_set(workout_id: int, body: CompleteSetBody, registry: RegistryDep):
    runner = _get_runner_or_404(workout_id, registry)
    try:
        runner.complete_set(weight_kg=body.weight_kg)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"Could not record set: {exc}")
    return runner.state()


@router.post("/{workout_id}/finish", response_model=RunnerState)
async def finish_run(workout_id: int, body: FinishBody, registry: RegistryDep):
    runner = _get_runner_or_404(workout_id, registry)
    try:
        runner.finish(body.notes)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StorageError as exc:
        # The run is still live; the client may retry
        raise HTTPException(status_code=503, detail=f"Could not finish workout: {exc}")
    return runner.state()


@router.delete("/{workout_id}", status_code=204)
async def discard_run(workout_id: int, registry: RegistryDep):
    if not registry.discard(workout_id):
        raise HTTPException(status_code=404, detail="Run not found")
