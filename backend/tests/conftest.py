import os
import tempfile
from pathlib import Path

import pytest

# Must run before `eduflow` is imported: settings are read at import time.
_DB_DIR = Path(tempfile.mkdtemp(prefix="eduflow-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_DB_DIR / 'test.db'}")
os.environ.setdefault("TOKEN_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")

from sqlmodel import Session, SQLModel  # noqa: E402

from eduflow.database import engine  # noqa: E402
from eduflow import models  # noqa: E402,F401


@pytest.fixture(autouse=True)
def reset_db():
    """Give every test a fresh set of empty tables."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


class FakeClock:
    """Settable clock for token expiry tests."""
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture
def clock():
    from datetime import datetime
    return FakeClock(datetime(2025, 3, 1, 12, 0, 0))
