import asyncio
import json

import pytest
from fastapi.websockets import WebSocketState

from connections import Connection, ConnectionRegistry, ConnectionState


class FakeWebSocket:
    def __init__(self, fail=False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(text))


def test_assign_identity_gives_unique_ids():
    registry = ConnectionRegistry()
    connections = [Connection() for _ in range(50)]
    ids = {registry.assign_identity(connection) for connection in connections}
    assert len(ids) == 50
    assert all(connection.id in registry for connection in connections)


def test_assign_identity_only_once():
    registry = ConnectionRegistry()
    connection = Connection()
    registry.assign_identity(connection)
    with pytest.raises(ValueError):
        registry.assign_identity(connection)


def test_released_connection_is_not_open():
    registry = ConnectionRegistry()
    connection = Connection()
    registry.assign_identity(connection)
    assert registry.is_open(connection)

    assert registry.release(connection)
    assert not registry.is_open(connection)
    assert not registry.release(connection)


def test_unregistered_connection_is_not_open():
    assert not ConnectionRegistry().is_open(Connection())


def test_is_open_follows_socket_state():
    websocket = FakeWebSocket()
    connection = Connection(websocket)
    assert connection.is_open
    websocket.client_state = WebSocketState.DISCONNECTED
    assert not connection.is_open
    assert not connection.send({"type": "ping"})
    assert connection.outbox.empty()


def test_state_transitions():
    connection = Connection()
    assert connection.state == ConnectionState.CONNECTED
    connection.room_id = "r"
    assert connection.state == ConnectionState.JOINED
    connection.closed = True
    assert connection.state == ConnectionState.CLOSED


def test_writer_delivers_in_order():
    async def scenario():
        websocket = FakeWebSocket()
        connection = Connection(websocket)
        connection.start()
        for i in range(5):
            connection.send({"type": "candidate", "n": i})
        await asyncio.sleep(0.05)
        await connection.stop()
        return websocket

    websocket = asyncio.run(scenario())
    assert [frame["n"] for frame in websocket.sent] == [0, 1, 2, 3, 4]


def test_failed_write_marks_connection_not_open():
    async def scenario():
        connection = Connection(FakeWebSocket(fail=True))
        connection.start()
        connection.send({"type": "offer"})
        await asyncio.sleep(0.05)
        is_open = connection.is_open
        await connection.stop()
        return is_open

    assert asyncio.run(scenario()) is False


def test_heartbeat_runs_until_stopped():
    async def scenario():
        connection = Connection()
        connection.start(heartbeat_interval=0.01)
        await asyncio.sleep(0.06)
        await connection.stop()
        queued = connection.outbox.qsize()
        await asyncio.sleep(0.03)
        return connection, queued

    connection, queued = asyncio.run(scenario())
    assert queued >= 1
    assert connection.outbox.qsize() == queued
    frames = [json.loads(connection.outbox.get_nowait()) for _ in range(queued)]
    assert all(frame == {"type": "ping"} for frame in frames)
    assert connection.state == ConnectionState.CLOSED


def test_full_outbox_marks_connection_failed():
    connection = Connection(max_queued=2)
    assert connection.send({"type": "ping"})
    assert connection.send({"type": "ping"})

    assert not connection.send({"type": "ping"})
    assert not connection.is_open
    assert connection.outbox.qsize() == 2
