"""
Shared fixtures: a fresh SQLite store per test, an in-process registry and
broadcaster, and a TestClient over a full app wired to the same file.
"""
import json

import pytest
from fastapi.testclient import TestClient

from vault.core.message import MessageService
from vault.core.rate_limit import limiter
from vault.infra.log_store import LogStore
from vault.main import create_app
from vault.services.relay_service import EventBroadcaster
from vault.services.subscriber_registry import SubscriberRegistry


class RecordingSubscriber:
    """Stand-in subscriber that keeps every frame it is handed"""

    def __init__(self, name="recorder", fail=False):
        self.subscriber_id = name
        self.peer = name
        self.frames = []
        self.fail = fail
        self.closed = False

    def deliver(self, frame):
        if self.fail:
            raise RuntimeError("connection reset")
        self.frames.append(frame)

    def close(self):
        self.closed = True

    @property
    def events(self):
        return [json.loads(f[len("data: "):]) for f in self.frames]


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'data' / 'vault.db'}"


@pytest.fixture
def store(database_url):
    store = LogStore(database_url)
    yield store
    store.dispose()


@pytest.fixture
def registry():
    return SubscriberRegistry()


@pytest.fixture
def broadcaster(registry):
    return EventBroadcaster(registry)


@pytest.fixture
def service(store, broadcaster):
    return MessageService(store, broadcaster)


@pytest.fixture
def recorder(registry):
    subscriber = RecordingSubscriber()
    registry.register(subscriber)
    return subscriber


@pytest.fixture
def make_subscriber():
    return RecordingSubscriber


@pytest.fixture
def app(database_url):
    limiter.reset()
    return create_app(database_url, sweep_interval=0)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def app_recorder(app):
    subscriber = RecordingSubscriber("app-recorder")
    app.state.registry.register(subscriber)
    return subscriber
