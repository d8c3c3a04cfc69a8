"""
Shared fixtures for the Presence Monitor test suite.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from presence_monitor.api.main import create_app
from presence_monitor.config.settings import get_test_settings
from presence_monitor.database.kv_store import InMemoryKVStore
from presence_monitor.services.alert_service import AlertService
from presence_monitor.services.dashboard_service import DashboardService
from presence_monitor.services.metrics_service import MetricsService
from presence_monitor.services.user_service import UserService

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return get_test_settings(
        rules_file=str(tmp_path / "alert_rules.json"),
        data_storage_path=str(tmp_path / "data"),
        log_directory=str(tmp_path / "logs"),
    )


@pytest.fixture
def store():
    return InMemoryKVStore()


@pytest.fixture
def metrics_service(settings, store, clock):
    return MetricsService(settings, store, clock=clock)


@pytest.fixture
def alert_service(settings, store, clock):
    return AlertService(settings, store, clock=clock)


@pytest.fixture
def dashboard_service(settings, store, metrics_service, alert_service, clock):
    return DashboardService(settings, store, metrics_service, alert_service, clock=clock)


@pytest.fixture
def user_service(settings, store, clock):
    return UserService(settings, store, clock=clock)


@pytest.fixture
def app(settings, store, clock):
    return create_app(settings, store=store, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login_as(client):
    """Factory that signs a user up through the API and returns (user, auth headers)."""

    def signup_and_login(email="owner@example.com", password="secret-pass", name="Owner"):
        response = client.post("/signup", json={"email": email, "password": password, "name": name})
        assert response.status_code == 201, response.text
        response = client.post("/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        body = response.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}

    return signup_and_login


@pytest.fixture
def auth(login_as):
    return login_as()
