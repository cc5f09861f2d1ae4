from typing import Callable, Optional

from backend import SignalingState
from connections import Connection
from logging_config import get_logger
from schemas.messages import JoinMessage, MalformedMessage, SignalMessage, UnknownMessage, decode_message

logger = get_logger(__name__)


class Router:
    """Classifies inbound frames and fans signaling payloads out to peers.

    Never touches membership or host state; `join` is handed to `on_join`.
    """

    def __init__(self, state: SignalingState, on_join: Optional[Callable[[Connection, str], None]] = None):
        self.state = state
        self.on_join = on_join

    def handle_message(self, connection: Connection, raw) -> None:
        message = decode_message(raw)

        if isinstance(message, MalformedMessage):
            logger.warning(f"Dropping malformed message from {connection.id}: {message.reason}")
            return
        if isinstance(message, UnknownMessage):
            logger.warning(f"Dropping message of unknown type {message.type!r} from {connection.id}")
            return
        if isinstance(message, JoinMessage):
            if self.on_join is None:
                logger.error(f"No join handler configured, dropping join from {connection.id}")
                return
            self.on_join(connection, message.room)
            return

        self.route_signal(connection, message)

    def resolve_room(self, sender: Connection, message: SignalMessage) -> Optional[str]:
        room_id = message.room or sender.room_id
        if room_id is None:
            return None
        room = self.state.rooms.get(room_id)
        if room is None or sender.id not in room.members:
            logger.debug(f"Peer {sender.id} is not a member of room {room_id}")
            return None
        return room_id

    def route_signal(self, sender: Connection, message: SignalMessage) -> int:
        """Forward an offer/answer/candidate. Returns the number of peers it was queued for."""
        room_id = self.resolve_room(sender, message)
        if room_id is None:
            logger.warning(f"Dropping {message.type} from {sender.id}: no room context")
            return 0

        if message.target is not None:
            return self.send_addressed(sender, room_id, message)
        return self.send_broadcast(sender, room_id, message)

    def send_addressed(self, sender: Connection, room_id: str, message: SignalMessage) -> int:
        room = self.state.rooms.get(room_id)
        target = room.members.get(message.target) if room else None

        if target is None:
            self.state.record_delivery_failure(sender, message.target, room_id, "target not in room")
            return 0
        if target is sender:
            self.state.record_delivery_failure(sender, message.target, room_id, "target is the sender")
            return 0
        if not self.state.connections.is_open(target):
            self.state.record_delivery_failure(sender, message.target, room_id, "target not open")
            return 0

        payload = message.to_wire()
        payload["peerId"] = sender.id
        payload["room"] = room_id
        if not target.send(payload):
            self.state.record_delivery_failure(sender, message.target, room_id, "target outbox full")
            return 0
        logger.debug(f"Relayed {message.type} from {sender.id} to {target.id} in room {room_id}")
        return 1

    def send_broadcast(self, sender: Connection, room_id: str, message: SignalMessage) -> int:
        delivered = self.broadcast(room_id, message.to_wire(), exclude=sender)
        logger.debug(f"Broadcast {message.type} from {sender.id} to {delivered} peers in room {room_id}")
        return delivered

    def broadcast(self, room_id: str, payload: dict, exclude: Optional[Connection] = None) -> int:
        room = self.state.rooms.get(room_id)
        if room is None:
            return 0
        delivered = 0
        for member in list(room.members.values()):
            if member is exclude:
                continue
            if self.send_to(member, payload):
                delivered += 1
        return delivered

    def send_to(self, connection: Connection, payload: dict) -> bool:
        if not self.state.connections.is_open(connection):
            logger.debug(f"Skipping {payload.get('type')} to {connection.id}: not open")
            return False
        return connection.send(payload)
