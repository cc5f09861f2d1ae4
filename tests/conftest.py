import json

import pytest

from backend import SignalingState
from signaling import SignalingRelay


@pytest.fixture
def relay():
    return SignalingRelay(SignalingState())


@pytest.fixture
def state(relay):
    return relay.state


@pytest.fixture
def drain():
    """Pop every queued frame off a connection's outbox, decoded."""
    def _drain(connection):
        frames = []
        while not connection.outbox.empty():
            frames.append(json.loads(connection.outbox.get_nowait()))
        return frames
    return _drain


@pytest.fixture
def join(relay):
    def _join(connection, room):
        relay.handle_message(connection, json.dumps({"type": "join", "room": room}))
    return _join


@pytest.fixture
def check_invariants():
    def _check(state):
        for room in state.rooms:
            assert room.members, f"room {room.id} is empty but still present"
            assert room.host_id in room.members
            hosts = [peer_id for peer_id in room.members if state.rooms.is_host(room.id, peer_id)]
            assert hosts == [room.host_id]
        for connection in state.connections:
            if connection.room_id is not None:
                room = state.rooms.get(connection.room_id)
                assert room is not None
                assert connection.id in room.members
    return _check
