import os


def _optional_int(name: str):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

DEFAULT_ROOM = os.getenv("DEFAULT_ROOM", "main")
ROOM_CAPACITY = _optional_int("ROOM_CAPACITY")  # None = unbounded, 2 = one negotiating pair
MAX_PEERS = _optional_int("MAX_PEERS")  # None = unbounded
ANNOUNCE_ROOM_SWITCH = os.getenv("ANNOUNCE_ROOM_SWITCH", "true").lower() in ("1", "true", "yes")
SEND_QUEUE_SIZE = int(os.getenv("SEND_QUEUE_SIZE", 256))

# Sender stamped on control messages the relay synthesizes itself
SERVER_SENDER = "server"

# WebSocket close codes
CLOSE_POLICY_VIOLATION = 1008
CLOSE_TRY_AGAIN_LATER = 1013
CLOSE_INTERNAL_ERROR = 1011

# Seconds allowed for a close handshake with a peer that stopped reading
CLOSE_TIMEOUT = float(os.getenv("CLOSE_TIMEOUT", 5))
