import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import ensure_indexes, get_db
from main import app

TEST_SETTINGS = Settings(
    jwt_secret="test-secret-for-signing-bearer-tokens",
    bcrypt_rounds=4,
)


@pytest.fixture()
def settings() -> Settings:
    return TEST_SETTINGS


@pytest.fixture()
def db():
    """In-memory stand-in for the MongoDB database."""
    database = mongomock.MongoClient()["disaster_preparedness_test"]
    ensure_indexes(database)
    return database


@pytest.fixture()
def client(db, settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def register(client):
    def _register(email="ana@example.com", password="s3cret-pass", region="north", **extra):
        body = {"fullName": "Ana Lopez", "email": email, "password": password, "region": region}
        body.update(extra)
        r = client.post("/api/register", json=body)
        assert r.status_code == 201, r.text
        return r.json()
    return _register


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
