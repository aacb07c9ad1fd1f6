from typing import Union

from pydantic import ValidationError

from broadcast import BroadcastEngine
from errors import RegistryError
from lifecycle import LifecycleManager
from logging_config import get_logger
from registry import ConnectionRegistry
from schemas.messages import JoinRequest, SignalMessage, parse_inbound

logger = get_logger(__name__)


def _classify(error: ValidationError) -> str:
    kinds = {e["type"] for e in error.errors()}
    if "json_invalid" in kinds:
        return "invalid JSON"
    if "union_tag_not_found" in kinds:
        return "missing type"
    if "union_tag_invalid" in kinds:
        return "unknown type"
    return "malformed message"


class MessageRouter:
    """Dispatches one inbound frame from a registered peer.

    Nothing routed here can close the sender's connection: anything that does
    not parse into a known message is logged and dropped.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        broadcaster: BroadcastEngine,
        lifecycle: LifecycleManager,
    ):
        self.registry = registry
        self.broadcaster = broadcaster
        self.lifecycle = lifecycle

    def route(self, sender_id: str, raw_payload: Union[str, bytes]):
        sender = self.registry.get(sender_id)
        if sender is None:
            raise RegistryError(f"Message routed for unregistered peer {sender_id}")

        try:
            message = parse_inbound(raw_payload)
        except ValidationError as e:
            logger.info(f"Discarding message from peer {sender_id}: {_classify(e)}")
            logger.debug(f"Validation errors for peer {sender_id}: {e.errors(include_url=False)}")
            return

        if isinstance(message, JoinRequest):
            self.lifecycle.switch_room(sender_id, message.room)
            return

        if isinstance(message, SignalMessage):
            # The relay alone decides who a message is from
            relayed = message.model_copy(update={"from": sender_id})
            delivered = self.broadcaster.broadcast(sender.room, relayed, exclude_id=sender_id)
            logger.debug(f"Relayed {message.type} from peer {sender_id} to {delivered} peer(s) in room {sender.room}")
