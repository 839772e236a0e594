"""
Shared fixtures.

Settings are read at import time, so the environment is pointed at a
throwaway database and storage directory before anything from minesight
is imported.
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="minesight-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["STORAGE_DIR"] = os.path.join(_TMP_DIR, "storage")
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["DETECTION_STRATEGY"] = "prompt"
os.environ["CLASSIFIER_CALL_INTERVAL"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime
from typing import List, Optional, Set

import httpx
import pytest

from minesight.ai.pipeline import ViolationCandidate


class FakeRecorder:
    """Collects candidates; raises for frame numbers listed in `fail_frames`."""

    def __init__(self, fail_frames: Optional[Set[int]] = None):
        self.fail_frames = set(fail_frames or ())
        self.recorded: List[ViolationCandidate] = []

    async def record(self, candidate: ViolationCandidate) -> int:
        if candidate.frame_number in self.fail_frames:
            raise RuntimeError(f"insert failed for frame {candidate.frame_number}")
        self.recorded.append(candidate)
        return len(self.recorded)


FIXED_START = datetime(2025, 10, 16, 12, 0, 0)


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def fixed_now():
    return lambda: FIXED_START


@pytest.fixture
async def database():
    from minesight.database import Base, dispose_db, engine, init_db

    await init_db()
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await dispose_db()


@pytest.fixture
async def client(database):
    from main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
