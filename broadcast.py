from typing import Optional

from pydantic import BaseModel

from errors import DeliveryError
from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.messages import encode

logger = get_logger(__name__)


class BroadcastEngine:
    """Delivers messages to the members of a room, one peer at a time.

    A peer that cannot be reached is skipped; it never affects delivery to
    the others. Cleanup of such peers is left to their own close/error path.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def broadcast(self, room: str, message: BaseModel, exclude_id: Optional[str] = None) -> int:
        """Send `message` to everyone in `room` except `exclude_id`.

        Returns the number of peers the frame was handed to.
        """
        text = encode(message)
        delivered = 0
        for peer in self.registry.members_of(room, exclude_id):
            if self._deliver(peer.connection, text, peer.id):
                delivered += 1
        logger.debug(f"Broadcast {message.type} to {delivered} peer(s) in room {room}")
        return delivered

    def send(self, connection, message: BaseModel) -> bool:
        """Send `message` to a single connection."""
        return self._deliver(connection, encode(message), getattr(connection, "peer_id", None))

    def _deliver(self, connection, text: str, peer_id) -> bool:
        # Close notification may lag behind; a closed connection is not an error
        if not connection.is_open:
            logger.debug(f"Skipping delivery to closed connection {peer_id}")
            return False
        try:
            connection.send(text)
            return True
        except DeliveryError as e:
            logger.warning(f"Failed to deliver to peer {peer_id}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error delivering to peer {peer_id}: {e}", exc_info=True)
        return False
