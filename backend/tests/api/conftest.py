"""API-specific test fixtures."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from factories import RecordingBlobStore
from projectflow.agent.planner_fake import PlannerFake
from projectflow.services.project_store import ProjectStore


@pytest.fixture
def planner():
    """PlannerFake injected through the get_planner dependency."""
    return PlannerFake(scenario="happy_path")


@pytest.fixture
def api_blob_store():
    return RecordingBlobStore()


@pytest.fixture
def api_client(planner, api_blob_store):
    """FastAPI test client backed by an in-memory ProjectStore.

    Mirrors create_app() but swaps the lifespan so no Redis or signal
    handlers are touched.
    """
    from projectflow.api.deps import get_planner
    from projectflow.api.routes import api_router
    from projectflow.main import add_request_id_middleware, register_error_handlers

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        """Test lifespan - hydrate the store in TestClient's event loop."""
        app.state.shutting_down = False
        app.state.project_store = ProjectStore(api_blob_store, storage_key="projects", strict_ordering_checks=True)
        await app.state.project_store.hydrate()
        yield

    app = FastAPI(title="ProjectFlow - Test Client", lifespan=test_lifespan)

    add_request_id_middleware(app)
    register_error_handlers(app)

    app.include_router(api_router, prefix="/api")
    app.dependency_overrides[get_planner] = lambda: planner

    with TestClient(app) as client:
        yield client
