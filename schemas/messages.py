from typing import Annotated, Any, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, TypeAdapter

from constants import SERVER_SENDER


# Inbound (client -> relay)

class JoinRequest(BaseModel):
    type: Literal["join"]
    room: StrictStr


class SignalMessage(BaseModel):
    """Peer-to-peer payload. Forwarded verbatim except for `from`."""

    # Every client key other than `type` and the payload (including any
    # client-supplied `from`) is kept as an extra and forwarded as sent
    model_config = ConfigDict(extra="allow")


class OfferMessage(SignalMessage):
    type: Literal["offer"]
    sdp: Any


class AnswerMessage(SignalMessage):
    type: Literal["answer"]
    sdp: Any


class CandidateMessage(SignalMessage):
    type: Literal["candidate"]
    candidate: Any


InboundMessage = Annotated[
    Union[JoinRequest, OfferMessage, AnswerMessage, CandidateMessage],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes]):
    """Parse one text frame into an inbound message.

    Raises pydantic.ValidationError for invalid JSON, a missing or unknown
    `type`, or missing/mistyped fields.
    """
    return _inbound_adapter.validate_json(raw)


# Outbound (relay -> client)

class ControlMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class IdMessage(ControlMessage):
    type: Literal["id"] = "id"
    id: str
    from_: str = Field(default=SERVER_SENDER, alias="from")


class PeersMessage(ControlMessage):
    type: Literal["peers"] = "peers"
    from_: str = Field(default=SERVER_SENDER, alias="from")
    peers: List[str]


class PeerJoinedMessage(ControlMessage):
    type: Literal["peer-joined"] = "peer-joined"
    from_: str = Field(alias="from")


class PeerLeftMessage(ControlMessage):
    type: Literal["peer-left"] = "peer-left"
    from_: str = Field(alias="from")


class JoinedRoomMessage(ControlMessage):
    type: Literal["joined-room"] = "joined-room"
    from_: str = Field(default=SERVER_SENDER, alias="from")
    room: str


class ErrorMessage(ControlMessage):
    type: Literal["error"] = "error"
    message: str


def encode(message: BaseModel) -> str:
    """Serialize a wire message into a JSON text frame."""
    return message.model_dump_json(by_alias=True)
