from typing import Annotated

from fastapi import Depends, Request
from sqlmodel import Session

from pacer.database import get_session
from pacer.gateway import Gateway
from pacer.services.registry import RunnerRegistry

SessionDep = Annotated[Session, Depends(get_session)]


def get_gateway(session: SessionDep) -> Gateway:
    return Gateway(session)


def get_registry(request: Request) -> RunnerRegistry:
    """The registry created in the app lifespan."""
    return request.app.state.runners


GatewayDep = Annotated[Gateway, Depends(get_gateway)]
RegistryDep = Annotated[RunnerRegistry, Depends(get_registry)]
