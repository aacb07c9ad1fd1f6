import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Union

from broadcast import BroadcastEngine
from constants import CLOSE_INTERNAL_ERROR
from errors import RegistryError
from lifecycle import LifecycleManager
from logging_config import get_logger
from message_router import MessageRouter
from registry import ConnectionRegistry

logger = get_logger(__name__)


# Transport events, consumed strictly in arrival order

@dataclass(frozen=True)
class Connected:
    connection: Any
    room: Optional[str] = None


@dataclass(frozen=True)
class Received:
    connection: Any
    payload: Union[str, bytes]


@dataclass(frozen=True)
class Closed:
    connection: Any


@dataclass(frozen=True)
class Errored:
    connection: Any
    cause: BaseException


Event = Union[Connected, Received, Closed, Errored]


class Relay:
    """Owns the registry and is the only place it is touched.

    Transport callbacks only `submit()` events; `run()` handles them one at a
    time, each to completion, so registry reads and writes never interleave.
    """

    def __init__(
        self,
        registry: Optional[ConnectionRegistry] = None,
        default_room: str = "main",
        room_capacity: Optional[int] = None,
        max_peers: Optional[int] = None,
        announce_room_switch: bool = True,
        **lifecycle_options,
    ):
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.broadcaster = BroadcastEngine(self.registry)
        self.lifecycle = LifecycleManager(
            self.registry,
            self.broadcaster,
            default_room=default_room,
            room_capacity=room_capacity,
            max_peers=max_peers,
            announce_room_switch=announce_room_switch,
            **lifecycle_options,
        )
        self.router = MessageRouter(self.registry, self.broadcaster, self.lifecycle)
        self._events: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, event: Event) -> bool:
        """Queue an event; returns False when no dispatch loop will handle it."""
        if not self.is_running:
            logger.warning(f"Relay not running, dropping {type(event).__name__}")
            return False
        self._events.put_nowait(event)
        return True

    def dispatch(self, event: Event):
        """Handle a single event synchronously."""
        connection = event.connection

        if isinstance(event, Connected):
            self.lifecycle.connect(connection, event.room)
            return

        peer_id = getattr(connection, "peer_id", None)
        if peer_id is None:
            # Rejected by capacity policy, never registered
            logger.debug(f"Ignoring {type(event).__name__} for unregistered connection")
            return

        if isinstance(event, Received):
            self.router.route(peer_id, event.payload)
        elif isinstance(event, Closed):
            self.lifecycle.disconnect(peer_id)
        elif isinstance(event, Errored):
            self.lifecycle.disconnect(peer_id, cause=event.cause)

    async def run(self):
        logger.info("Relay dispatch loop started")
        while True:
            event = await self._events.get()
            try:
                self.dispatch(event)
            except RegistryError as e:
                logger.critical(f"Registry invariant violated, stopping relay: {e}", exc_info=True)
                self._close_all(CLOSE_INTERNAL_ERROR, "Relay failure")
                raise
            except Exception as e:
                logger.error(f"Error handling {type(event).__name__}: {e}", exc_info=True)
            finally:
                self._events.task_done()

    def _close_all(self, code: int, reason: str):
        """Close every registered peer so none waits on a loop that is gone."""
        for peer in self.registry.peers():
            try:
                peer.connection.close(code=code, reason=reason)
            except Exception as e:
                logger.error(f"Error closing peer {peer.id}: {e}", exc_info=True)

    async def join(self):
        """Wait until every submitted event has been handled."""
        await self._events.join()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._events = asyncio.Queue()
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except RegistryError:
            # Already logged when the loop died
            pass
        self._task = None
        logger.info("Relay dispatch loop stopped")
