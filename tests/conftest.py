from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.db import Base
from app.models import exercise_template, workout_exercise, workout_session  # noqa: F401
from app.models.user import User
from app.services.lifecycle import SessionLifecycleManager
from app.services.store import SessionStore
from app.services.templates import ExerciseSnapshot


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 5, 18, 0, tzinfo=timezone.utc)

    def now(self):
        return self.current

    def advance(self, seconds=0, **kwargs):
        self.current += timedelta(seconds=seconds, **kwargs)


class RecordingSink:
    def __init__(self):
        self.events = []

    def notify(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [e.value for e, _ in self.events]


def snapshots(*names):
    return [
        ExerciseSnapshot(name=n, target_muscle="chest", sets="3", reps="8-12", weight="40")
        for n in names
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest_asyncio.fixture
async def sessionmaker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def users(sessionmaker):
    async with sessionmaker() as db:
        u1 = User(email="u1@example.com", password_hash="x")
        u2 = User(email="u2@example.com", password_hash="x")
        db.add_all([u1, u2])
        await db.commit()
        return u1.id, u2.id


@pytest.fixture
def store(sessionmaker):
    return SessionStore(sessionmaker)


@pytest.fixture
def lifecycle(store, clock, sink):
    return SessionLifecycleManager(store, clock=clock, notifier=sink)


@pytest.fixture
def make_snapshots():
    return snapshots
