"""
Test the HTTP surface with the sync engine backed by in-memory fakes.
"""

import pytest
from fastapi.testclient import TestClient

from stacksave.api.main import create_app
from stacksave.core.database import DatabaseManager
from stacksave.sync.container import SyncContainer
from tests.conftest import RecordingSleep
from tests.fakes import FakeChainClient, InMemoryMirrorStore, OWNER


@pytest.fixture
def container():
    return SyncContainer.build(
        FakeChainClient(),
        InMemoryMirrorStore(),
        sleep=RecordingSleep(),
    )


@pytest.fixture
def client(container):
    app = create_app(container=container)
    with TestClient(app) as test_client:
        yield test_client


def test_sync_goal(client, container):
    container.chain_client.set_goal(7, deposited=100, yield_earned=4)

    response = client.post("/api/v1/goals/7/sync")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["id"] == 7
    assert body["data"]["deposited_amount"] == "100"
    assert body["data"]["current_value"] == "104"
    assert body["data"]["status_text"] == "Active"
    assert body["data"]["progress_percentage"] == 10.0


def test_sync_goal_missing_on_chain(client):
    response = client.post("/api/v1/goals/404/sync")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "SYNC_ERROR"
    assert body["details"] == {"goal_id": 404}


def test_sync_goal_chain_failure(client, container):
    container.chain_client.set_goal(7)
    container.chain_client.failing_reads.add(7)

    response = client.post("/api/v1/goals/7/sync")

    assert response.status_code == 502
    assert response.json()["error_code"] == "CHAIN_CLIENT_ERROR"


def test_sync_goal_rejects_non_integer_id(client):
    response = client.post("/api/v1/goals/abc/sync")
    assert response.status_code == 422


def test_sync_user_goals(client, container):
    container.store.seed_goal(1)
    container.store.seed_goal(2)
    container.chain_client.set_goal(1, deposited=10)
    container.chain_client.set_goal(2, deposited=20)

    response = client.post(f"/api/v1/users/{OWNER}/sync")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["owner"] == OWNER
    assert data["synced_count"] == 2


def test_sync_user_goals_rejects_bad_address(client):
    response = client.post("/api/v1/users/not-an-address/sync")
    assert response.status_code == 400


def test_listener_start_stop_and_status(client):
    # Lifespan starts the listener
    status = client.get("/api/v1/sync/status").json()["data"]
    assert status["state"] == "listening"

    stopped = client.post("/api/v1/sync/stop").json()["data"]
    assert stopped["state"] == "stopped"
    assert stopped["is_listening"] is False

    started = client.post("/api/v1/sync/start").json()["data"]
    assert started["state"] == "listening"
    assert started["reconnect_attempts"] == 0


def test_listener_start_failure(client, container):
    client.post("/api/v1/sync/stop")
    container.chain_client.fail_subscribe = True

    response = client.post("/api/v1/sync/start")

    assert response.status_code == 503
    assert response.json()["error_code"] == "SUBSCRIPTION_ERROR"


def test_health(client, monkeypatch):
    async def healthy():
        return True

    monkeypatch.setattr(DatabaseManager, "health_check", staticmethod(healthy))

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"] == {"database": "healthy", "listener": "listening"}


def test_health_reports_database_outage(client, monkeypatch):
    async def unhealthy():
        return False

    monkeypatch.setattr(DatabaseManager, "health_check", staticmethod(unhealthy))

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["services"]["database"] == "unhealthy"
