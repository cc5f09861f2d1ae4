import asyncio
import json
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from fastapi.websockets import WebSocketState

from constants import OUTBOX_MAX_FRAMES
from logging_config import get_logger
from schemas.messages import Heartbeat

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    JOINED = "joined"
    CLOSED = "closed"


class Connection:
    """One live client channel.

    Outbound frames go through a queue drained by a writer task, so
    `send()` never waits on the peer. A connection built without a
    websocket (tests) just accumulates frames in `outbox`.
    """

    def __init__(self, websocket=None, max_queued: int = OUTBOX_MAX_FRAMES):
        self.id: Optional[str] = None
        self.websocket = websocket
        self.room_id: Optional[str] = None
        self.connected_at = datetime.now().isoformat()
        self.closed = False
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=max_queued)
        self._transport_failed = False
        self._writer_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        if self.closed:
            return ConnectionState.CLOSED
        if self.room_id is not None:
            return ConnectionState.JOINED
        return ConnectionState.CONNECTED

    @property
    def is_open(self) -> bool:
        if self.closed or self._transport_failed:
            return False
        if self.websocket is None:
            return True
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def send(self, message: dict) -> bool:
        """Queue a frame for this peer. Returns False if the channel is not open.

        A peer whose queue is full is not reading; it is marked failed and
        skipped from then on.
        """
        if not self.is_open:
            logger.debug(f"Skipping send to {self.id}: connection not open")
            return False
        try:
            self.outbox.put_nowait(json.dumps(message))
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.id} ({self.outbox.maxsize} frames), marking it closed")
            self._transport_failed = True
            return False
        return True

    def start(self, heartbeat_interval: float = 0):
        if self.websocket is not None and self._writer_task is None:
            self._writer_task = asyncio.create_task(self._write_loop())
        if heartbeat_interval and self._heartbeat_task is None:
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(heartbeat_interval))
            logger.debug(f"Heartbeat every {heartbeat_interval}s for connection {self.id}")

    async def stop(self):
        """Cancel the writer and heartbeat tasks. Queued frames are discarded."""
        self.closed = True
        for task in (self._heartbeat_task, self._writer_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._heartbeat_task = None
        self._writer_task = None

    async def _write_loop(self):
        while True:
            frame = await self.outbox.get()
            try:
                await self.websocket.send_text(frame)
            except Exception as e:
                # The receive loop sees the close and runs the disconnect transition
                logger.warning(f"Send to connection {self.id} failed, marking it closed: {e}")
                self._transport_failed = True
                return

    async def _heartbeat_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            if not self.send(Heartbeat().to_wire()):
                return


class ConnectionRegistry:
    """Live connections keyed by their server-assigned peer id."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def assign_identity(self, connection: Connection) -> str:
        if connection.id is not None:
            raise ValueError(f"Connection already has identity {connection.id}")
        peer_id = uuid.uuid4().hex
        while peer_id in self._connections:
            peer_id = uuid.uuid4().hex
        connection.id = peer_id
        self._connections[peer_id] = connection
        logger.debug(f"Assigned peer id {peer_id} ({len(self._connections)} live connections)")
        return peer_id

    def get(self, peer_id: str) -> Optional[Connection]:
        return self._connections.get(peer_id)

    def is_open(self, connection: Connection) -> bool:
        return (
            connection.id is not None
            and self._connections.get(connection.id) is connection
            and connection.is_open
        )

    def release(self, connection: Connection) -> bool:
        """Forget a connection. Returns False if it was not registered."""
        if self._connections.get(connection.id) is not connection:
            return False
        del self._connections[connection.id]
        logger.debug(f"Released peer id {connection.id} ({len(self._connections)} live connections)")
        return True

    def __len__(self):
        return len(self._connections)

    def __contains__(self, peer_id):
        return peer_id in self._connections

    def __iter__(self):
        return iter(list(self._connections.values()))
