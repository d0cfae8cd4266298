"""
Pytest configuration for task API tests.

TASK_API_DATABASE_URL must be set before any task_api import because
task_api.main builds a module-level app from the environment.
"""

import os

# --- Environment setup (before ANY task_api imports) ---
os.environ["TASK_API_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("TASK_API_LOG_LEVEL", "INFO")

import pytest

from fastapi.testclient import TestClient

from task_api.config import Settings
from task_api.database import Base, init_db, make_engine
from task_api.main import create_app
from task_api.store import SQLTaskStore

from factories import TEST_SECRET


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        jwt_secret=TEST_SECRET,
        cors_origins="",
    )


@pytest.fixture
def engine():
    """In-memory SQLite engine with the tasks table, dropped after each test."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def store(engine):
    return SQLTaskStore(engine)


@pytest.fixture
def client(settings, store):
    """TestClient for an app backed by the in-memory store."""
    app = create_app(settings, store)
    with TestClient(app) as c:
        yield c
