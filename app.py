from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.websockets import WebSocketState
from routers.rooms import rooms_router
from schemas.rooms import HealthResponse
from backend import signaling_state
from signaling import SignalingRelay
from constants import HEARTBEAT_INTERVAL, LOG_LEVEL, LOG_FILE, WS_PATH, WS_PATH_ALIAS
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

app = FastAPI()

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins
    allow_credentials=True,
    allow_methods=["*"],  # Allow all HTTP methods
    allow_headers=["*"],  # Allow all headers
)

app.include_router(rooms_router)

# Process-wide relay over the single in-memory state
relay = SignalingRelay(signaling_state)

logger.info("FastAPI application initialized")


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        connections=len(signaling_state.connections),
        rooms=len(signaling_state.rooms),
        delivery_failures=signaling_state.delivery_failures,
    )


@app.websocket(WS_PATH)
@app.websocket(WS_PATH_ALIAS)
async def websocket_endpoint(websocket: WebSocket):
    """Signaling channel: one JSON message per frame, text or binary.

    The connection stays open whatever the client sends; frames that
    cannot be routed are dropped and logged.
    """
    await websocket.accept()
    connection = relay.connect(websocket)
    connection.start(HEARTBEAT_INTERVAL)

    message_count = 0
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                logger.info(f"WebSocket disconnected for connection {connection.id} (code {frame.get('code')})")
                break

            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes")
            message_count += 1
            logger.debug(f"Received message #{message_count} from connection {connection.id}")

            try:
                relay.handle_message(connection, raw)
            except Exception as e:
                logger.error(f"Error handling message from connection {connection.id}: {e}", exc_info=True)

    except Exception as e:
        logger.error(f"WebSocket error for connection {connection.id}: {e}", exc_info=True)
    finally:
        relay.disconnect(connection)
        await connection.stop()

        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")
