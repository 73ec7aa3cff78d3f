import json
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from pacer.database import get_session
from pacer.dependencies import get_registry
from pacer.gateway import Gateway
from pacer.main import app
from pacer.models import Exercise, SessionExercise, SessionType, TrainingSession
from pacer.services.registry import RunnerRegistry
from pacer.services.runner import SessionRunner

# ---------------------------------------------------------------------------
# Manual time
# ---------------------------------------------------------------------------


class FakeClock:
    def __init__(self, start: datetime = datetime(2025, 1, 15, 8, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


class ManualTicker:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Ticker factory whose tickers only fire when the test says so."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock
        self.tickers: list[ManualTicker] = []

    def __call__(self, callback) -> ManualTicker:
        ticker = ManualTicker(callback)
        self.tickers.append(ticker)
        return ticker

    @property
    def active(self) -> list[ManualTicker]:
        return [t for t in self.tickers if not t.cancelled]

    def advance(self, seconds: int) -> None:
        """Let ``seconds`` one-second ticks elapse."""
        for _ in range(seconds):
            if self.clock is not None:
                self.clock.advance(1)
            for ticker in self.active:
                ticker.callback()

    def wait(self, seconds: int) -> None:
        """Let wall-clock time pass without any tick."""
        if self.clock is not None:
            self.clock.advance(seconds)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(name="session")
def session_fixture():
    # StaticPool ensures the in-memory DB is shared across all connections,
    # including those spawned by TestClient's anyio thread pool.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="gateway")
def gateway_fixture(session: Session) -> Gateway:
    return Gateway(session)


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="scheduler")
def scheduler_fixture(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture(name="runner")
def runner_fixture(gateway: Gateway, scheduler: ManualScheduler, clock: FakeClock):
    runner = SessionRunner(gateway, ticker_factory=scheduler, clock=clock)
    yield runner
    runner.reset()


@pytest.fixture(name="client")
def client_fixture(session: Session, scheduler: ManualScheduler, clock: FakeClock):
    def override_get_session():
        yield session

    registry = RunnerRegistry(lambda: session, ticker_factory=scheduler, clock=clock)
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Record factories
# ---------------------------------------------------------------------------


class Factory:
    def __init__(self, session: Session):
        self.session = session

    def _save(self, record):
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def exercise(self, name: str, **fields) -> Exercise:
        return self._save(Exercise(name=name, **fields))

    def training_session(
        self,
        name: str = "Session",
        type: SessionType = SessionType.CUSTOM,
        type_config: dict | None = None,
        config_json: str | None = None,
    ) -> TrainingSession:
        if type_config is not None:
            config_json = json.dumps({"typeConfig": type_config})
        return self._save(TrainingSession(name=name, type=type, config_json=config_json))

    def session_exercise(
        self, training_session: TrainingSession, order_index: int, **fields
    ) -> SessionExercise:
        return self._save(
            SessionExercise(session_id=training_session.id, order_index=order_index, **fields)
        )

    def session_with_exercises(self, names: list[str], **session_fields) -> TrainingSession:
        training_session = self.training_session(**session_fields)
        for index, name in enumerate(names):
            self.session_exercise(training_session, index, custom_name=name)
        return training_session


@pytest.fixture(name="factory")
def factory_fixture(session: Session) -> Factory:
    return Factory(session)
