import pytest

from litemark import create_app
from litemark.config import TestConfig
from litemark.services.repository import CachedDocumentRepository
from litemark.storage import BOOKMARKS, SETTINGS, DocumentStore


class MemoryStore(DocumentStore):
    kind = "memory"

    def __init__(self):
        super().__init__(
            {BOOKMARKS: "data/bookmarks.json", SETTINGS: "data/settings.json"}
        )
        self.objects: dict[str, str] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.reads = 0
        self.writes = 0
        self.on_fetch = None

    def fetch_text(self, path):
        self.reads += 1
        if self.fail_reads:
            raise ConnectionError("backend offline")
        text = self.objects.get(path)
        if self.on_fetch is not None:
            self.on_fetch(path)
        return text

    def store_text(self, path, body):
        if self.fail_writes:
            raise ConnectionError("backend offline")
        self.writes += 1
        self.objects[path] = body


class ManualTimers:
    def __init__(self):
        self.pending = {}
        self.cancelled = []

    def schedule(self, name, delay_seconds, func):
        self.pending[name] = (delay_seconds, func)

    def cancel(self, name):
        self.cancelled.append(name)
        self.pending.pop(name, None)

    def fire(self, name):
        _, func = self.pending.pop(name)
        func()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def timers():
    return ManualTimers()


@pytest.fixture
def repository(store):
    return CachedDocumentRepository(store, refresh_interval_ms=0)


@pytest.fixture
def app(tmp_path):
    class LocalTestConfig(TestConfig):
        LOCAL_STORAGE_DIR = str(tmp_path)
        ADMIN_USERNAME = "admin"
        ADMIN_PASSWORD = "secret"

    app = create_app(LocalTestConfig)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(client):
    response = client.post(
        "/api/auth/login", json={"username": "admin", "password": "secret"}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def make_repository():
    def factory(refresh_interval_ms=0, timers=None):
        return CachedDocumentRepository(
            MemoryStore(), refresh_interval_ms=refresh_interval_ms, timers=timers
        )

    return factory
