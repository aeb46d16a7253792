"""Shared test fixtures: in-memory SQLite fleet, scheduler and API client."""
import os

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SIMULATION_AUTOSTART"] = "false"
os.environ["SIMULATION_TICK_MODE"] = "scheduler"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.database import init_db, make_engine
from app.models import Base
from app.modules.fleet_seed import seed_fleet
from app.modules.scheduler import FleetScheduler
from app.modules.sim_clock import SimulationClock
from app.modules.state_store import VesselStateStore


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with all tables for each test."""
    eng = make_engine("sqlite://")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seeded(session_factory):
    """Session factory over a database holding the four demo vessels."""
    session = session_factory()
    try:
        seed_fleet(session)
    finally:
        session.close()
    return session_factory


@pytest.fixture
def store(seeded):
    return VesselStateStore(seeded)


@pytest.fixture
def scheduler(store):
    sched = FleetScheduler(
        store,
        SimulationClock(),
        interval_seconds=0.01,
        write_workers=1,
        io_timeout=5.0,
        lock_timeout=2.0,
    )
    sched.load()
    yield sched
    sched.shutdown()


@pytest.fixture
def api_client():
    """TestClient over the real app; lifespan seeds the shared in-memory DB."""
    from app.database import engine as app_engine
    from app.main import app

    with TestClient(app) as client:
        yield client
    Base.metadata.drop_all(bind=app_engine)
