import json

import pytest

from errors import RegistryError
from relay import Closed, Connected, Errored, Received, Relay

from conftest import FakeConnection, sequential_ids


@pytest.fixture
def relay():
    return Relay(id_factory=sequential_ids("A", "B", "C"))


def offer(sdp):
    return json.dumps({"type": "offer", "sdp": sdp})


def test_scenario_two_peers_negotiate(relay):
    a, b = FakeConnection(), FakeConnection()

    relay.dispatch(Connected(a))
    assert a.sent == [{"type": "id", "id": "A", "from": "server"}]

    relay.dispatch(Connected(b))
    assert b.sent == [
        {"type": "id", "id": "B", "from": "server"},
        {"type": "peers", "from": "server", "peers": ["A"]},
    ]
    assert a.sent[-1] == {"type": "peer-joined", "from": "B"}

    a.clear()
    relay.dispatch(Received(a, offer("X")))
    assert b.sent[-1] == {"type": "offer", "sdp": "X", "from": "A"}
    assert a.sent == []

    relay.dispatch(Closed(b))
    assert a.sent == [{"type": "peer-left", "from": "B"}]
    assert relay.registry.get("B") is None


def test_errored_connection_is_cleaned_up(relay):
    a, b = FakeConnection(), FakeConnection()
    relay.dispatch(Connected(a))
    relay.dispatch(Connected(b))
    a.clear()

    relay.dispatch(Errored(b, ConnectionResetError("gone")))

    assert a.sent == [{"type": "peer-left", "from": "B"}]
    assert len(relay.registry) == 1


def test_events_for_rejected_connection_are_ignored():
    relay = Relay(room_capacity=1, id_factory=sequential_ids("A", "B"))
    a, b = FakeConnection(), FakeConnection()
    relay.dispatch(Connected(a))
    relay.dispatch(Connected(b))
    a.clear()

    relay.dispatch(Received(b, offer("X")))
    relay.dispatch(Closed(b))

    assert b.closed is not None
    assert a.sent == []
    assert len(relay.registry) == 1


def test_connected_with_initial_room(relay):
    a = FakeConnection()
    relay.dispatch(Connected(a, "side"))
    assert relay.registry.get("A").room == "side"


def test_submit_without_running_loop_is_dropped(relay):
    assert not relay.is_running
    assert relay.submit(Connected(FakeConnection())) is False


async def test_queued_events_are_processed_in_order(relay):
    relay.start()
    a, b = FakeConnection(), FakeConnection()

    relay.submit(Connected(a))
    relay.submit(Connected(b))
    for n in range(5):
        relay.submit(Received(a, offer(str(n))))
    relay.submit(Closed(b))
    await relay.join()

    offers = b.of_type("offer")
    assert [m["sdp"] for m in offers] == ["0", "1", "2", "3", "4"]
    assert a.sent[-1] == {"type": "peer-left", "from": "B"}
    await relay.stop()


async def test_unexpected_error_does_not_stop_the_loop(relay, monkeypatch):
    relay.start()
    a = FakeConnection()
    relay.submit(Connected(a))
    await relay.join()

    def explode(peer_id, raw):
        raise ValueError("boom")

    monkeypatch.setattr(relay.router, "route", explode)
    relay.submit(Received(a, offer("X")))
    relay.submit(Closed(a))
    await relay.join()

    assert len(relay.registry) == 0
    await relay.stop()


async def test_registry_violation_stops_the_loop_and_closes_peers(relay):
    task = relay.start()
    a, b = FakeConnection(), FakeConnection()
    relay.submit(Connected(a))
    relay.submit(Connected(b))
    ghost = FakeConnection()
    ghost.peer_id = "ghost"

    relay.submit(Received(ghost, offer("X")))

    with pytest.raises(RegistryError):
        await task
    assert not relay.is_running
    assert a.closed == (1011, "Relay failure")
    assert b.closed == (1011, "Relay failure")
    assert relay.submit(Received(a, offer("Y"))) is False
    await relay.stop()
