"""API-specific test fixtures.

The app is built with a no-op lifespan (no database) and the service
container is swapped for one backed by InMemoryPhaseStore.
"""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from stagecall.api.deps import build_services, get_services
from stagecall.core.config import Settings
from stagecall.main import create_app


@asynccontextmanager
async def _test_lifespan(app: FastAPI):
    app.state.shutting_down = False
    yield


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, transition_scheduler_enabled=False, auto_transition_dry_run=False)


@pytest.fixture
def services(store, test_settings):
    return build_services(store, test_settings)


@pytest.fixture
def api_client(services):
    app = create_app(lifespan_handler=_test_lifespan)
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
