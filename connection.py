import asyncio
from typing import Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from constants import CLOSE_TIMEOUT, CLOSE_TRY_AGAIN_LATER, SEND_QUEUE_SIZE
from errors import DeliveryError
from logging_config import get_logger

logger = get_logger(__name__)


class _Close:
    def __init__(self, code: int, reason: str):
        self.code = code
        self.reason = reason


class PeerConnection:
    """Transport handle for one peer's WebSocket.

    `send` only queues the frame; the actual socket write happens in
    `pump()`, which runs as the connection's own task (see `start()`). A peer
    that lets its queue fill up is dropped instead of stalling everyone else.
    """

    def __init__(self, websocket: WebSocket, max_pending: int = SEND_QUEUE_SIZE):
        self.websocket = websocket
        self.peer_id: Optional[str] = None
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closing = False
        self._writer: Optional[asyncio.Task] = None
        self._closer: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return (
            not self._closing
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def send(self, text: str):
        if self._closing:
            raise DeliveryError("connection is closing")
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for peer {self.peer_id}, dropping connection")
            self._abort(CLOSE_TRY_AGAIN_LATER, "Peer not reading")
            raise DeliveryError("outbound queue full")

    def close(self, code: int = 1000, reason: str = ""):
        """Close after any frames already queued have been written."""
        if self._closing:
            return
        self._closing = True
        try:
            self._outbox.put_nowait(_Close(code, reason))
        except asyncio.QueueFull:
            self._abort(code, reason)

    def _abort(self, code: int, reason: str):
        """Drop everything still queued and close now.

        A writer blocked on a peer that stopped reading would never reach a
        queued close, so it is cancelled and the close runs on its own task.
        """
        self._closing = True
        while not self._outbox.empty():
            self._outbox.get_nowait()
        if self._writer is None or self._writer.done():
            self._outbox.put_nowait(_Close(code, reason))
            return
        self._writer.cancel()
        self._closer = asyncio.create_task(self._close_socket(code, reason))

    def start(self) -> asyncio.Task:
        """Run `pump()` as this connection's writer task."""
        if self._writer is None:
            self._writer = asyncio.create_task(self.pump())
        return self._writer

    async def stop(self):
        """Cancel the writer and wait for any close already under way."""
        if self._writer is not None:
            self._writer.cancel()
        for task in (self._writer, self._closer):
            if task is None:
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def pump(self):
        """Write queued frames to the socket until a close is requested or it fails."""
        while True:
            item = await self._outbox.get()
            if isinstance(item, _Close):
                await self._close_socket(item.code, item.reason)
                return
            try:
                await self.websocket.send_text(item)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                # The receive loop reports the disconnect; nothing left to write to
                logger.debug(f"Stopped writing to peer {self.peer_id}: {e}")
                self._closing = True
                return

    async def _close_socket(self, code: int, reason: str):
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await asyncio.wait_for(self.websocket.close(code=code, reason=reason), CLOSE_TIMEOUT)
            logger.debug(f"Closed connection for peer {self.peer_id} with code {code}")
        except asyncio.TimeoutError:
            logger.warning(f"Timed out closing connection for peer {self.peer_id}")
        except (RuntimeError, OSError) as e:
            logger.debug(f"Error closing WebSocket for peer {self.peer_id}: {e}")
