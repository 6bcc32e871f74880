# tests/conftest.py
import os

# Harus diset sebelum modul app diimpor (config membaca env saat import)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/portal_test")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"
os.environ["AUTH_URL"] = ""
os.environ["STORAGE_URL"] = ""

import httpx
import pytest
from loguru import logger

from app.db.store import ITEMS, PROFILES
from tests.fakes import InMemoryDataStore, make_item, make_profile


@pytest.fixture
def store():
    return InMemoryDataStore()


@pytest.fixture
def seeded_store(store):
    store.seed(PROFILES, make_profile("admin-1", role="admin"))
    store.seed(PROFILES, make_profile("siswa-1"))
    store.seed(ITEMS, make_item("alat-1", jumlah=10))
    return store


@pytest.fixture
def log_messages():
    """Pesan loguru yang tercatat selama test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def http_recorder():
    """httpx.AsyncClient over a MockTransport; set `recorder.status` to simulate failures."""

    class Recorder:
        def __init__(self):
            self.requests = []
            self.status = 200
            self.raise_error = None

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if self.raise_error is not None:
                raise self.raise_error
            return httpx.Response(self.status, json={"ok": self.status < 400})

        def client(self) -> httpx.AsyncClient:
            return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    return Recorder()

