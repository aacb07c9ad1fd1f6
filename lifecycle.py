import uuid
from typing import Callable, Optional

from broadcast import BroadcastEngine
from constants import CLOSE_POLICY_VIOLATION
from errors import RegistryError
from logging_config import get_logger
from registry import ConnectionRegistry, Peer
from schemas.messages import (
    ErrorMessage,
    IdMessage,
    JoinedRoomMessage,
    PeerJoinedMessage,
    PeerLeftMessage,
    PeersMessage,
)

logger = get_logger(__name__)


def generate_peer_id() -> str:
    return str(uuid.uuid4())


class LifecycleManager:
    """Connect, room switch and disconnect handling for peers.

    Every method runs to completion without awaiting, so a caller that
    serializes calls (see relay.Relay) never observes a half-applied change.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        broadcaster: BroadcastEngine,
        default_room: str = "main",
        room_capacity: Optional[int] = None,
        max_peers: Optional[int] = None,
        announce_room_switch: bool = True,
        id_factory: Callable[[], str] = generate_peer_id,
    ):
        self.registry = registry
        self.broadcaster = broadcaster
        self.default_room = default_room
        self.room_capacity = room_capacity
        self.max_peers = max_peers
        self.announce_room_switch = announce_room_switch
        self.id_factory = id_factory

    def room_is_full(self, room: str) -> bool:
        if self.room_capacity is None:
            return False
        return len(self.registry.members_of(room)) >= self.room_capacity

    def _rejection_reason(self, room: str) -> Optional[str]:
        if self.max_peers is not None and len(self.registry) >= self.max_peers:
            return "Relay is full"
        if self.room_is_full(room):
            return f"Room {room} is full"
        return None

    def connect(self, connection, room: Optional[str] = None) -> Optional[Peer]:
        """Register a freshly accepted connection and announce it to its room.

        Returns None when the capacity policy rejected the connection; in that
        case the peer has been sent an `error` message and its connection closed.
        """
        peer_id = self.id_factory()
        room = room if room is not None else self.default_room

        reason = self._rejection_reason(room)
        if reason:
            logger.info(f"Connection {peer_id} rejected for room {room}: {reason}")
            self.broadcaster.send(connection, ErrorMessage(message=reason))
            connection.close(code=CLOSE_POLICY_VIOLATION, reason=reason)
            return None

        peer = self.registry.register(peer_id, connection, room)
        connection.peer_id = peer_id
        logger.info(f"Peer {peer_id} connected to room {room} (total peers: {len(self.registry)})")

        self.broadcaster.send(connection, IdMessage(id=peer_id))

        others = self.registry.members_of(room, exclude_id=peer_id)
        if others:
            self.broadcaster.send(connection, PeersMessage(peers=[p.id for p in others]))

        self.broadcaster.broadcast(room, PeerJoinedMessage(from_=peer_id), exclude_id=peer_id)
        return peer

    def switch_room(self, peer_id: str, room: str):
        """Move a registered peer to `room`.

        Not atomic from an observer's point of view: members of the old room
        may see `peer-left` before the new room sees `peer-joined`.
        """
        peer = self.registry.get(peer_id)
        if peer is None:
            raise RegistryError(f"Cannot move unregistered peer {peer_id}")
        old_room = peer.room

        if room == old_room:
            logger.debug(f"Peer {peer_id} re-joined its current room {room}")
            self._send_room_state(peer, room)
            return

        if self.room_is_full(room):
            reason = f"Room {room} is full"
            logger.info(f"Peer {peer_id} refused entry to room {room}: {reason}")
            self.broadcaster.send(peer.connection, ErrorMessage(message=reason))
            return

        self.registry.set_room(peer_id, room)
        logger.info(f"Peer {peer_id} switched from room {old_room} to room {room}")

        self.broadcaster.broadcast(old_room, PeerLeftMessage(from_=peer_id), exclude_id=peer_id)
        self.broadcaster.broadcast(room, PeerJoinedMessage(from_=peer_id), exclude_id=peer_id)
        self._send_room_state(peer, room)

    def _send_room_state(self, peer: Peer, room: str):
        others = self.registry.members_of(room, exclude_id=peer.id)
        self.broadcaster.send(peer.connection, PeersMessage(peers=[p.id for p in others]))
        if self.announce_room_switch:
            self.broadcaster.send(peer.connection, JoinedRoomMessage(room=room))

    def disconnect(self, peer_id: str, cause: Optional[BaseException] = None) -> Optional[Peer]:
        """Remove a peer whose connection closed or failed and tell its room.

        A transport error gets exactly the same cleanup as a clean close.
        """
        peer = self.registry.unregister(peer_id)
        if peer is None:
            logger.warning(f"Disconnect for unknown peer {peer_id}")
            return None

        if cause is not None:
            logger.warning(f"Peer {peer_id} dropped from room {peer.room} after transport error: {cause}")
        else:
            logger.info(f"Peer {peer_id} disconnected from room {peer.room} (total peers: {len(self.registry)})")

        self.broadcaster.broadcast(peer.room, PeerLeftMessage(from_=peer_id))
        return peer
