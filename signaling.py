from typing import Optional

from backend import SignalingState
from connections import Connection
from lifecycle import LifecycleManager
from logging_config import get_logger
from relay import Router

logger = get_logger(__name__)


class SignalingRelay:
    """Entry points for transport events: connect, message, disconnect."""

    def __init__(self, state: Optional[SignalingState] = None):
        self.state = state if state is not None else SignalingState()
        self.router = Router(self.state)
        self.lifecycle = LifecycleManager(self.state, self.router)
        self.router.on_join = self.lifecycle.join

    def connect(self, websocket=None) -> Connection:
        connection = Connection(websocket)
        self.state.connections.assign_identity(connection)
        logger.info(f"Client connected as {connection.id}")
        return connection

    def handle_message(self, connection: Connection, raw):
        self.router.handle_message(connection, raw)

    def disconnect(self, connection: Connection):
        self.lifecycle.disconnect(connection)
        logger.info(f"Client {connection.id} disconnected")
