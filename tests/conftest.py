# tests/conftest.py
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from medisync import config
from medisync.main import create_app
from medisync.store import ClinicStore

# Fixed "now" shortly before the seeded Albuterol Inhaler expires (2025-01-10).
REFERENCE_NOW = datetime(2024, 12, 20, 9, 30)

DEMO_OWNER = 1
OTHER_OWNER = 2


class FakeClock:
    """Stands in for the store clock; only moves when a test says so."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock(REFERENCE_NOW)


@pytest.fixture
def store(clock):
    store = ClinicStore(clock=clock)
    yield store
    store.close()


@pytest.fixture
def client(store):
    app = create_app(store=store, settings=config.TestingConfig())
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    return {"X-User-Id": str(DEMO_OWNER)}


@pytest.fixture
def other_headers():
    return {"X-User-Id": str(OTHER_OWNER)}
