from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from connection import PeerConnection
from constants import (
    ANNOUNCE_ROOM_SWITCH,
    CLOSE_INTERNAL_ERROR,
    DEFAULT_ROOM,
    LOG_FILE,
    LOG_LEVEL,
    MAX_PEERS,
    ROOM_CAPACITY,
)
from logging_config import get_logger, setup_logging
from relay import Closed, Connected, Errored, Received, Relay
from routers.rooms import rooms_router

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    relay = Relay(
        default_room=DEFAULT_ROOM,
        room_capacity=ROOM_CAPACITY,
        max_peers=MAX_PEERS,
        announce_room_switch=ANNOUNCE_ROOM_SWITCH,
    )
    relay.start()
    app.state.relay = relay
    logger.info(
        f"Signaling relay ready (default room: {DEFAULT_ROOM}, "
        f"room capacity: {ROOM_CAPACITY or 'unbounded'}, max peers: {MAX_PEERS or 'unbounded'})"
    )
    try:
        yield
    finally:
        await relay.stop()


app = FastAPI(lifespan=lifespan)

# Configure CORS to allow all origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

logger.info("FastAPI application initialized")


@app.get("/health")
async def health():
    relay: Relay = app.state.relay
    if not relay.is_running:
        logger.error("Health check failed: relay dispatch loop is not running")
        raise HTTPException(status_code=503, detail="Relay dispatch loop is not running")
    return {"status": "ok", "peers": len(relay.registry)}


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, room: Optional[str] = None):
    """Signaling WebSocket.

    Query parameters:
    - room: Optional initial room (defaults to the configured default room)
    """
    relay: Relay = websocket.app.state.relay
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"

    if not relay.is_running:
        logger.error(f"WebSocket connection rejected from {client}: relay dispatch loop is not running")
        await websocket.close(code=CLOSE_INTERNAL_ERROR, reason="Relay unavailable")
        return

    await websocket.accept()
    logger.info(f"WebSocket connection accepted from {client}")

    connection = PeerConnection(websocket)
    connection.start()
    relay.submit(Connected(connection, room))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            if message.get("text") is not None:
                relay.submit(Received(connection, message["text"]))
            elif message.get("bytes") is not None:
                relay.submit(Received(connection, message["bytes"]))
    except WebSocketDisconnect as e:
        logger.info(f"WebSocket from {client} disconnected (peer {connection.peer_id}, code {e.code})")
        relay.submit(Closed(connection))
    except Exception as e:
        logger.error(f"WebSocket error from {client} (peer {connection.peer_id}): {e}", exc_info=True)
        relay.submit(Errored(connection, e))
    finally:
        await connection.stop()
