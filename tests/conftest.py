"""Pytest fixtures building isolated applications and stores."""

import pytest
from fastapi.testclient import TestClient

from tasks_api.db import SQLiteRepository
from tasks_api.main import create_app
from tasks_api.repositories import InMemoryRepository
from tasks_api.settings import Settings


@pytest.fixture(params=["sqlite", "memory"])
def settings(request, tmp_path) -> Settings:
    return Settings(
        app_mode="full",
        persistence_backend=request.param,
        sqlite_db_path=str(tmp_path / "data" / "tasks.db"),
    )


@pytest.fixture
def client(settings):
    # Entering the context runs the lifespan, which opens the store
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def demo_client():
    with TestClient(create_app(Settings(app_mode="demo"))) as c:
        yield c


@pytest.fixture(params=["sqlite", "memory"])
def repo(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "tasks.db"))
    return InMemoryRepository()
