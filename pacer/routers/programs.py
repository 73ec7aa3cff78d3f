from fastapi import APIRouter, HTTPException
from sqlmodel import SQLModel

from pacer.dependencies import GatewayDep
from pacer.gateway import Gateway
from pacer.models import Program, SessionType

router = APIRouter()


class ProgramRead(SQLModel):
    id: int
    name: str
    description: str | None


class ProgramSessionRead(SQLModel):
    id: int
    session_id: int
    session_name: str
    session_type: SessionType
    order_index: int


class ProgramDetail(ProgramRead):
    sessions: list[ProgramSessionRead]


class ProgramCreate(SQLModel):
    name: str
    description: str | None = None


class ProgramUpdate(SQLModel):
    name: str | None = None
    description: str | None = None


class AddSessionBody(SQLModel):
    session_id: int


def _build_program_detail(program: Program, gateway: Gateway) -> ProgramDetail:
    sessions = [
        ProgramSessionRead(
            id=link.id,
            session_id=ts.id,
            session_name=ts.name,
            session_type=ts.type,
            order_index=link.order_index,
        )
        for link, ts in gateway.list_program_sessions(program.id)
    ]
    return ProgramDetail(
        id=program.id, name=program.name, description=program.description, sessions=sessions
    )


def _get_program_or_404(id: int, gateway: Gateway) -> Program:
    program = gateway.get_program(id)
    if program is None:
        raise HTTPException(status_code=404, detail="Program not found")
    return program


@router.get("/", response_model=list[ProgramRead])
def list_programs(gateway: GatewayDep):
    return gateway.list_programs()


@router.post("/", response_model=ProgramDetail, status_code=201)
def create_program(body: ProgramCreate, gateway: GatewayDep):
    program = gateway.create_program(Program(**body.model_dump()))
    return _build_program_detail(program, gateway)


@router.get("/{id}", response_model=ProgramDetail)
def get_program(id: int, gateway: GatewayDep):
    return _build_program_detail(_get_program_or_404(id, gateway), gateway)


@router.patch("/{id}", response_model=ProgramDetail)
def update_program(id: int, body: ProgramUpdate, gateway: GatewayDep):
    program = _get_program_or_404(id, gateway)
    program = gateway.update_program(program, body.model_dump(exclude_unset=True))
    return _build_program_detail(program, gateway)


@router.delete("/{id}", status_code=204)
def delete_program(id: int, gateway: GatewayDep):
    gateway.delete_program(_get_program_or_404(id, gateway))


@router.post("/{id}/sessions", response_model=ProgramDetail, status_code=201)
def add_session_to_program(id: int, body: AddSessionBody, gateway: GatewayDep):
    program = _get_program_or_404(id, gateway)
    if gateway.get_session(body.session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    gateway.add_session_to_program(id, body.session_id)
    return _build_program_detail(program, gateway)


@router.delete("/{id}/sessions/{link_id}", status_code=204)
def remove_session_from_program(id: int, link_id: int, gateway: GatewayDep):
    link = gateway.get_program_session(link_id)
    if link is None or link.program_id != id:
        raise HTTPException(status_code=404, detail="ProgramSession not found")
    gateway.remove_program_session(link)
