from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, NamedTuple, Optional

from connections import Connection, ConnectionRegistry
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Room:
    id: str
    # Insertion ordered: join order decides host succession
    members: Dict[str, Connection] = field(default_factory=dict)
    host_id: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())


class AddResult(NamedTuple):
    is_first_member: bool
    already_member: bool


class RemoveResult(NamedTuple):
    was_member: bool
    was_host: bool
    remaining: List[Connection]
    is_empty: bool


class RoomTable:
    """Authoritative store of room membership and host designation."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def get(self, room_id: str) -> Optional[Room]:
        return self._rooms.get(room_id)

    def ensure_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            room = Room(id=room_id)
            self._rooms[room_id] = room
            logger.info(f"Room {room_id} created")
        return room

    def add_member(self, room_id: str, connection: Connection) -> AddResult:
        """Add a connection to a room, creating the room on first reference.

        The first member of an empty room becomes its host.
        """
        room = self.ensure_room(room_id)
        if connection.id in room.members:
            logger.debug(f"Peer {connection.id} already in room {room_id}")
            return AddResult(is_first_member=False, already_member=True)

        is_first_member = not room.members
        room.members[connection.id] = connection
        if is_first_member:
            self.assign_host(room_id, connection)
        logger.debug(f"Peer {connection.id} added to room {room_id} ({len(room.members)} members)")
        return AddResult(is_first_member=is_first_member, already_member=False)

    def remove_member(self, room_id: str, connection: Connection) -> RemoveResult:
        """Remove a connection from a room.

        If it was host, the room is left without a host; the caller picks a
        successor. The room itself is not deleted here, see delete_if_empty.
        """
        room = self._rooms.get(room_id)
        if room is None or connection.id not in room.members:
            remaining = list(room.members.values()) if room else []
            return RemoveResult(was_member=False, was_host=False, remaining=remaining, is_empty=not remaining)

        del room.members[connection.id]
        was_host = room.host_id == connection.id
        if was_host:
            room.host_id = None
        remaining = list(room.members.values())
        logger.debug(f"Peer {connection.id} removed from room {room_id}: was_host={was_host}, remaining={len(remaining)}")
        return RemoveResult(was_member=True, was_host=was_host, remaining=remaining, is_empty=not remaining)

    def delete_if_empty(self, room_id: str) -> bool:
        room = self._rooms.get(room_id)
        if room is None or room.members:
            return False
        del self._rooms[room_id]
        logger.info(f"Room {room_id} is now empty and closed")
        return True

    def assign_host(self, room_id: str, connection: Connection):
        room = self._rooms.get(room_id)
        if room is None:
            raise KeyError(f"Room {room_id} does not exist")
        if connection.id not in room.members:
            raise ValueError(f"Peer {connection.id} is not a member of room {room_id}")
        previous = room.host_id
        room.host_id = connection.id
        logger.info(f"Peer {connection.id} is now host of room {room_id} (previous: {previous})")

    def pick_successor(self, room_id: str) -> Optional[Connection]:
        """Earliest remaining member by join order."""
        room = self._rooms.get(room_id)
        if room is None:
            return None
        return next(iter(room.members.values()), None)

    def host_of(self, room_id: str) -> Optional[Connection]:
        room = self._rooms.get(room_id)
        if room is None or room.host_id is None:
            return None
        return room.members.get(room.host_id)

    def is_host(self, room_id: str, peer_id: str) -> bool:
        room = self._rooms.get(room_id)
        return room is not None and room.host_id is not None and room.host_id == peer_id

    def rooms_of(self, peer_id: str) -> List[str]:
        return [room_id for room_id, room in self._rooms.items() if peer_id in room.members]

    def __contains__(self, room_id):
        return room_id in self._rooms

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def __len__(self):
        return len(self._rooms)


class SignalingState:
    """All mutable relay state for one process. Built fresh per test."""

    def __init__(self):
        self.connections = ConnectionRegistry()
        self.rooms = RoomTable()
        self.delivery_failures = 0

    def record_delivery_failure(self, sender: Connection, target_id: Optional[str], room_id: str, reason: str):
        self.delivery_failures += 1
        logger.warning(
            f"Delivery failed from {sender.id} to {target_id} in room {room_id}: {reason} "
            f"(total failures: {self.delivery_failures})"
        )


signaling_state = SignalingState()
