from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from errors import RegistryError
from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class Peer:
    id: str
    room: str
    # Anything with send(text), close(code, reason) and is_open
    connection: Any


class ConnectionRegistry:
    """Authoritative mapping of peer id -> connection and current room.

    Rooms are not stored: a room is the set of peers whose `room` equals a
    label, so it exists only while it has members. Membership enumeration
    walks every registered peer, which is fine for signaling-sized rooms.
    """

    def __init__(self):
        # Format: {peer_id: Peer}, in registration order
        self._peers: Dict[str, Peer] = {}

    def register(self, peer_id: str, connection, room: str) -> Peer:
        if peer_id in self._peers:
            raise RegistryError(f"Peer {peer_id} is already registered")
        peer = Peer(id=peer_id, room=room, connection=connection)
        self._peers[peer_id] = peer
        logger.debug(f"Registered peer {peer_id} in room {room} (total peers: {len(self._peers)})")
        return peer

    def unregister(self, peer_id: str) -> Optional[Peer]:
        peer = self._peers.pop(peer_id, None)
        if peer is None:
            logger.debug(f"Unregister requested for unknown peer {peer_id}")
            return None
        logger.debug(f"Unregistered peer {peer_id} from room {peer.room} (total peers: {len(self._peers)})")
        return peer

    def set_room(self, peer_id: str, room: str):
        peer = self._peers.get(peer_id)
        if peer is None:
            raise RegistryError(f"Cannot move unregistered peer {peer_id}")
        logger.debug(f"Moving peer {peer_id} from room {peer.room} to room {room}")
        peer.room = room

    def members_of(self, room: str, exclude_id: Optional[str] = None) -> List[Peer]:
        return [
            peer for peer in self._peers.values()
            if peer.room == room and peer.id != exclude_id
        ]

    def get(self, peer_id: str) -> Optional[Peer]:
        return self._peers.get(peer_id)

    def peers(self) -> List[Peer]:
        return list(self._peers.values())

    def rooms(self) -> Dict[str, int]:
        """Room label -> member count, for every room with at least one member."""
        counts: Dict[str, int] = {}
        for peer in self._peers.values():
            counts[peer.room] = counts.get(peer.room, 0) + 1
        return counts

    def __len__(self):
        return len(self._peers)

    def __contains__(self, peer_id):
        return peer_id in self._peers
