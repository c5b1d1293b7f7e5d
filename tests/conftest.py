import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from asclepius import db as real_db
from asclepius.context import SessionContext
from asclepius.main import app
from asclepius.services.countdown import CountdownRegistry
from asclepius.storage import backend


class FakeBlobStore(backend.BlobStore):
    """
    In-memory blob store; set ``fail_uploads`` to simulate an outage and
    ``signature`` to hand out signed URLs (bump it to rotate them).
    """

    container = "test-media"
    _errors = (OSError,)

    def __init__(self):
        self.objects = {}
        self.fail_uploads = False
        self.fail_deletes = False
        self.signature = None

    def _put(self, key, data, content_type):
        if self.fail_uploads:
            raise OSError("blob store unreachable")
        self.objects[key] = (data, content_type)

    def _url(self, key):
        url = f"https://blobs.test/{self.container}/{key}"
        if self.signature is not None:
            url += f"?sig={self.signature}"
        return url

    def _remove(self, key):
        if self.fail_deletes:
            raise OSError("blob store unreachable")
        self.objects.pop(key, None)

    def _ensure(self):
        pass


class FakeClock:
    """Whole-second UTC instants, one minute apart per call."""

    def __init__(self, start=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc), step=timedelta(minutes=1)):
        self.start = start
        self.step = step
        self.current = start

    def __call__(self):
        self.current = self.current + self.step
        return self.current


async def _instant_sleep(_seconds):
    await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def mock_db(monkeypatch):
    # replace mongodb with an in-memory motor-compatible client
    mock_client = AsyncMongoMockClient()
    mock_db = mock_client["test_db"]
    monkeypatch.setattr(real_db, "db", mock_db)
    yield mock_db


@pytest.fixture(autouse=True)
def blobs(monkeypatch):
    store = FakeBlobStore()
    monkeypatch.setattr(backend, "blob_store", store)
    return store


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def instant_sleep():
    """Countdown sleep that only yields to the loop."""
    return _instant_sleep


@pytest.fixture
def countdowns(instant_sleep):
    return CountdownRegistry(sleep=instant_sleep)


@pytest.fixture
def physio_ctx():
    return SessionContext(uid="physio-1", role="physio", token="t-physio")


@pytest.fixture
def athlete_ctx():
    return SessionContext(uid="athlete-1", role="athlete", token="t-athlete")


@pytest.fixture
def client():
    # context manager runs startup/shutdown and keeps one event loop alive
    with TestClient(app) as c:
        yield c


def _register_and_login(client, kind, email, **fields):
    data = {"name": fields.pop("name"), "email": email, "password": "secret123", **fields}
    res = client.post(f"/auth/register/{kind}", data=data)
    assert res.status_code == 201, res.text
    res = client.post("/auth/token", data={"username": email, "password": "secret123"})
    assert res.status_code == 200, res.text
    body = res.json()
    return {
        "uid": body["uid"],
        "token": body["access_token"],
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
    }


@pytest.fixture
def athlete(client):
    """Registered + logged-in athlete: {uid, token, headers}."""
    return _register_and_login(client, "athlete", "ana@example.com", name="Ana", age="24", sport="Football")


@pytest.fixture
def physio(client):
    return _register_and_login(
        client, "physio", "paul@example.com",
        name="Paul", specialization="Sports", license_number="LIC-42",
    )
