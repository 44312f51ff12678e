import pytest
from fastapi.testclient import TestClient

from flowershop.config import Settings, get_settings
from flowershop.database import MemoryStore, get_store
from flowershop.main import app

ADMIN = ("admin@example.com", "Admin1234!")
CUSTOMER = ("customer@example.com", "Customer1234!")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        AUTH_SECRET="test-secret-for-orders-handler-123456789",
        ADMIN_EMAIL=ADMIN[0],
        ADMIN_PASSWORD=ADMIN[1],
        CUSTOMER_EMAIL=CUSTOMER[0],
        CUSTOMER_PASSWORD=CUSTOMER[1],
        OPENAI_API_KEY=None,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client(settings, store):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def login(client, email, password):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response


@pytest.fixture
def admin_client(client):
    login(client, *ADMIN)
    return client


@pytest.fixture
def customer_client(client):
    login(client, *CUSTOMER)
    return client


def stock_of(store, flower_id):
    return next(f["stock"] for f in store.flowers if f["id"] == flower_id)
