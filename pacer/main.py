import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

import pacer.models as _models  # noqa: F401 registers tables with SQLModel metadata
from pacer.config import settings
from pacer.database import create_db_and_tables, engine
from pacer.errors import NotFoundError, StorageError
from pacer.routers import exercises, programs, runs, sessions, workouts
from pacer.services.registry import RunnerRegistry
from pacer.services.ticker import scheduler_ticker_factory

logger = logging.getLogger(__name__)

# Configure basic logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
# Configure the logging for the app itself if the user specifies it.
if settings.log_level:
    match settings.log_level.upper():
        case "DEBUG":
            log_level = logging.DEBUG
        case "INFO":
            log_level = logging.INFO
        case "WARNING":
            log_level = logging.WARNING
        case "ERROR":
            log_level = logging.ERROR
        case "CRITICAL":
            log_level = logging.CRITICAL
        case _:
            raise ValueError(f"Invalid log level: {settings.log_level}")
    logging.getLogger("pacer").setLevel(log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    # Tick jobs of every live run, on the app's event loop
    scheduler = AsyncIOScheduler()
    app.state.runners = RunnerRegistry(
        lambda: Session(engine), ticker_factory=scheduler_ticker_factory(scheduler)
    )
    scheduler.start()
    yield
    app.state.runners.close_all()
    scheduler.shutdown()


app = FastAPI(title="Pacer", lifespan=lifespan)


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


app.include_router(exercises.router, prefix="/api/exercises", tags=["exercises"])
app.include_router(sessions.router, prefix="/api/sessions", tags=["sessions"])
app.include_router(programs.router, prefix="/api/programs", tags=["programs"])
app.include_router(workouts.router, prefix="/api/workouts", tags=["workouts"])
app.include_router(runs.router, prefix="/api/runs", tags=["runs"])
