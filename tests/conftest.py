"""
Pytest configuration and fixtures.
Shared test utilities and a scriptable orchestrator.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from data.mock_orchestrator import MOCK_RENEWAL_DATES
from src.config import OrchestratorConfig
from src.dialog import RenewalDialog
from src.orchestrator_client import OrchestratorClient, RenewalPipeline
from src.session_store import SessionStore


class FakeOrchestrator:
    """
    Scriptable stand-in for the orchestrator HTTP API.

    Each endpoint answers with a configurable status and JSON body; every
    request is recorded so tests can check which stages ran.
    """

    def __init__(self):
        self.auth_status = 200
        self.auth_body = {"result": "tok1"}
        self.start_status = 201
        self.start_body = {"value": [{"Id": "job1"}]}
        self.queue_status = 200
        self.queue_body = {
            "value": [
                {"SpecificContent": {"in_cust_id": "12345"}},
                {"SpecificContent": {"output_api": "2025-12-31"}},
            ]
        }
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/api/account/authenticate"):
            return httpx.Response(self.auth_status, json=self.auth_body)
        if path.endswith("StartJobs"):
            return httpx.Response(self.start_status, json=self.start_body)
        if path.endswith("/odata/QueueItems"):
            return httpx.Response(self.queue_status, json=self.queue_body)
        return httpx.Response(404)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def orchestrator_config():
    """Mock credentials and job constants."""
    return OrchestratorConfig(
        base_url="https://orchestrator.test",
        tenancy_name="test-tenant",
        username="robot@test.local",
        password="secret",
        release_key="release-key-1",
        robot_ids=(74213,),
    )


@pytest.fixture
def fake_orchestrator():
    return FakeOrchestrator()


@pytest.fixture
def sleeps():
    """Records requested waits instead of sleeping."""
    return []


@pytest.fixture
def orchestrator_client(orchestrator_config, fake_orchestrator, sleeps):
    return OrchestratorClient(
        orchestrator_config, transport=fake_orchestrator.transport(), sleep=sleeps.append
    )


@pytest.fixture
def pipeline(orchestrator_client):
    return RenewalPipeline(orchestrator_client)


@pytest.fixture
def session_store():
    return SessionStore(max_sessions=100, ttl_seconds=1800)


@pytest.fixture
def dialog(session_store, pipeline):
    return RenewalDialog(session_store, pipeline)


@pytest.fixture
def mock_renewal_dates():
    """Return canned renewal dates for testing."""
    return MOCK_RENEWAL_DATES.copy()


@pytest.fixture
def test_client():
    """Create FastAPI test client."""
    from src.main import app

    return TestClient(app)
