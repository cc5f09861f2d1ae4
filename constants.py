import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 10000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Seconds between heartbeat frames on each connection, 0 disables
HEARTBEAT_INTERVAL = float(os.getenv("HEARTBEAT_INTERVAL", 30))

WS_PATH = "/"
WS_PATH_ALIAS = "/ws"

# Frames queued for a peer that is not reading before it is treated as failed
OUTBOX_MAX_FRAMES = int(os.getenv("OUTBOX_MAX_FRAMES", 256))
