from fastapi import APIRouter, HTTPException
from sqlmodel import SQLModel

from pacer.dependencies import GatewayDep
from pacer.models import Exercise

router = APIRouter()


class ExerciseRead(SQLModel):
    id: int
    name: str
    category: str | None
    description: str | None
    is_custom: bool


class ExerciseCreate(SQLModel):
    name: str
    category: str | None = None
    description: str | None = None
    is_custom: bool = True


class ExerciseUpdate(SQLModel):
    name: str | None = None
    category: str | None = None
    description: str | None = None


@router.get("/", response_model=list[ExerciseRead])
def list_exercises(gateway: GatewayDep):
    return gateway.list_exercises()


@router.post("/", response_model=ExerciseRead, status_code=201)
def create_exercise(body: ExerciseCreate, gateway: GatewayDep):
    if not body.name.strip():
        raise HTTPException(status_code=400, detail="Name must not be empty")
    return gateway.create_exercise(Exercise(**body.model_dump()))


@router.get("/{id}", response_model=ExerciseRead)
def get_exercise(id: int, gateway: GatewayDep):
    exercise = gateway.get_exercise(id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return exercise


@router.patch("/{id}", response_model=ExerciseRead)
def update_exercise(id: int, body: ExerciseUpdate, gateway: GatewayDep):
    exercise = gateway.get_exercise(id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    return gateway.update_exercise(exercise, body.model_dump(exclude_unset=True))


@router.delete("/{id}", status_code=204)
def delete_exercise(id: int, gateway: GatewayDep):
    exercise = gateway.get_exercise(id)
    if exercise is None:
        raise HTTPException(status_code=404, detail="Exercise not found")
    gateway.delete_exercise(exercise)
