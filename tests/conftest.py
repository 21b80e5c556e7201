import os
import sys

import pytest
import pytest_asyncio

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from ficqueue.store.config_store import ConfigStore
from ficqueue.store.database import build_engine, build_sessionmaker, init_db
from ficqueue.store.jobs import JobStore
from ficqueue.store.results import ResultStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = build_engine(TEST_DATABASE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def job_store(sessions):
    return JobStore(sessions)


@pytest.fixture
def config_store(sessions):
    return ConfigStore(sessions)


@pytest.fixture
def result_store(sessions):
    return ResultStore(sessions)
