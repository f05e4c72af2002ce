import random
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from apps.api.main import app, get_database
from libs.storage import MemoryBackend
from libs.store import ManualScheduler, QADatabase

START_MS = 1_700_000_000_000
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_db(backend, scheduler, clock):
    """Factory for stores sharing the test backend, scheduler and clock."""

    created = []

    def factory(**kwargs) -> QADatabase:
        kwargs.setdefault("scheduler", scheduler)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", random.Random(0))
        db = QADatabase(kwargs.pop("backend", backend), **kwargs)
        created.append(db)
        return db

    yield factory

    for db in created:
        db.close()


@pytest.fixture()
def db(make_db) -> QADatabase:
    return make_db()


@pytest.fixture()
def client(db):
    """FastAPI test client bound to an in-memory store."""

    app.dependency_overrides[get_database] = lambda: db
    # No context manager: the lifespan (and its on-disk store) is skipped
    yield TestClient(app)
    app.dependency_overrides.clear()
