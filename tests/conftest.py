"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from factcheck.database import Base
import factcheck.models  # noqa: F401
from factcheck.schemas.results import JobStatus


class FakeJobClient:
    """Stands in for ExternalApiClient; scripted per step and per job id."""

    def __init__(self):
        self.submitted = []
        self.failures = {}  # step -> list of exceptions raised before succeeding
        self.statuses = {}  # job id -> list of JobStatus, last one repeats
        self.status_queries = []
        self._ids = itertools.count(1)

    def submit(self, step, payload):
        pending = self.failures.get(step)
        if pending:
            raise pending.pop(0)
        job_id = f"{step}-{next(self._ids)}"
        self.submitted.append((step, payload, job_id))
        return job_id

    def get_job_status(self, job_id):
        self.status_queries.append(job_id)
        script = self.statuses.get(job_id)
        if not script:
            return JobStatus(status="pending")
        status = script[0] if len(script) == 1 else script.pop(0)
        if isinstance(status, Exception):
            raise status
        return status

    def complete(self, job_id, result):
        self.statuses[job_id] = [JobStatus(status="completed", result=result)]


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared across sessions and threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    """Create a test database session for each test."""
    db = session_factory()

    yield db

    db.close()


@pytest.fixture
def fake_client():
    return FakeJobClient()


@pytest.fixture
def sleeps():
    """Records requested sleeps instead of sleeping."""
    return []
