import itertools
import json

import pytest

from broadcast import BroadcastEngine
from errors import DeliveryError
from lifecycle import LifecycleManager
from message_router import MessageRouter
from registry import ConnectionRegistry


class FakeConnection:
    """In-memory stand-in for a peer's WebSocket handle."""

    def __init__(self, fail: bool = False):
        self.peer_id = None
        self.sent = []
        self.closed = None
        self.open = True
        self.fail = fail

    @property
    def is_open(self):
        return self.open and self.closed is None

    def send(self, text):
        if self.fail:
            raise DeliveryError("send failed")
        self.sent.append(json.loads(text))

    def close(self, code=1000, reason=""):
        self.closed = (code, reason)

    def of_type(self, kind):
        return [m for m in self.sent if m["type"] == kind]

    def clear(self):
        self.sent.clear()


def sequential_ids(*ids):
    """id factory yielding the given ids, then peer-N."""
    return itertools.chain(ids, (f"peer-{n}" for n in itertools.count(1))).__next__


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(registry):
    return BroadcastEngine(registry)


@pytest.fixture
def lifecycle(registry, broadcaster):
    return LifecycleManager(registry, broadcaster, id_factory=sequential_ids("A", "B", "C", "D"))


@pytest.fixture
def router(registry, broadcaster, lifecycle):
    return MessageRouter(registry, broadcaster, lifecycle)


@pytest.fixture
def connect(lifecycle):
    """Connect a fresh fake peer and return its connection."""

    def _connect(room=None, **kwargs):
        connection = FakeConnection(**kwargs)
        lifecycle.connect(connection, room)
        return connection

    return _connect
