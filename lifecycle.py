from backend import SignalingState
from connections import Connection
from logging_config import get_logger
from relay import Router
from schemas.messages import HostChanged, PeerJoined, PeerLeft

logger = get_logger(__name__)


class LifecycleManager:
    """Join, disconnect and host migration.

    Every method runs to completion synchronously, so each transition is
    atomic with respect to other events on the same event loop.
    """

    def __init__(self, state: SignalingState, router: Router):
        self.state = state
        self.router = router

    def join(self, connection: Connection, room_id: str):
        if connection.closed:
            logger.debug(f"Ignoring join to {room_id} from closed connection {connection.id}")
            return

        previous = connection.room_id
        if previous is not None and previous != room_id:
            # Joining another room does not leave the previous one
            logger.warning(f"Peer {connection.id} joining room {room_id} while still a member of {previous}")

        result = self.state.rooms.add_member(room_id, connection)
        connection.room_id = room_id

        if result.already_member:
            return
        if result.is_first_member:
            logger.info(f"Peer {connection.id} joined room {room_id} as host")
            return

        logger.info(f"Peer {connection.id} joined room {room_id}")
        host = self.state.rooms.host_of(room_id)
        if host is not None:
            self.router.send_to(host, PeerJoined(peerId=connection.id, room=room_id).to_wire())

    def disconnect(self, connection: Connection):
        """Close transition. Runs at most once per connection."""
        if not self.state.connections.release(connection):
            return
        connection.closed = True

        room_ids = self.state.rooms.rooms_of(connection.id)
        if not room_ids:
            logger.info(f"Peer {connection.id} disconnected without joining a room")
            return

        for room_id in room_ids:
            self.leave_room(connection, room_id)
        connection.room_id = None

    def leave_room(self, connection: Connection, room_id: str):
        rooms = self.state.rooms
        result = rooms.remove_member(room_id, connection)
        if not result.was_member:
            return
        logger.info(f"Peer {connection.id} left room {room_id} ({len(result.remaining)} remaining)")

        # host-changed must reach clients before peer-left
        if result.was_host and result.remaining:
            successor = rooms.pick_successor(room_id)
            rooms.assign_host(room_id, successor)
            self.router.broadcast(room_id, HostChanged(newHostId=successor.id, room=room_id).to_wire())

        if result.remaining:
            self.router.broadcast(room_id, PeerLeft(peerId=connection.id, room=room_id).to_wire())

        self.cleanup_room(room_id)

    def cleanup_room(self, room_id: str) -> bool:
        return self.state.rooms.delete_if_empty(room_id)
