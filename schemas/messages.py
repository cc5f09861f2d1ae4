import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


# Inbound (client -> server)

class JoinMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["join"]
    room: str = Field(min_length=1)


class SignalMessage(BaseModel):
    """Common shape of offer / answer / candidate.

    `peerId` names the target peer on the way in; it is rewritten to the
    sender's id when the message is forwarded in addressed mode.
    """
    model_config = ConfigDict(extra="allow")

    room: Optional[str] = Field(default=None, min_length=1)
    target: Optional[str] = Field(default=None, alias="peerId")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class OfferMessage(SignalMessage):
    type: Literal["offer"]
    offer: Any


class AnswerMessage(SignalMessage):
    type: Literal["answer"]
    answer: Any


class CandidateMessage(SignalMessage):
    type: Literal["candidate"]
    candidate: Any


InboundMessage = Annotated[
    Union[JoinMessage, OfferMessage, AnswerMessage, CandidateMessage],
    Field(discriminator="type"),
]

KNOWN_TYPES = frozenset({"join", "offer", "answer", "candidate"})

_inbound_adapter = TypeAdapter(InboundMessage)


class MalformedMessage(BaseModel):
    reason: str


class UnknownMessage(BaseModel):
    type: Any = None


def decode_message(raw: Union[str, bytes]):
    """Decode one frame into an inbound variant or a decode-failure variant.

    Never raises: anything that is not a JSON object, or that fails the
    schema of its declared type, comes back as MalformedMessage.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        return MalformedMessage(reason=f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return MalformedMessage(reason=f"expected a JSON object, got {type(data).__name__}")

    msg_type = data.get("type")
    if not isinstance(msg_type, str) or msg_type not in KNOWN_TYPES:
        return UnknownMessage(type=msg_type)

    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        return MalformedMessage(reason=f"invalid {msg_type} message: {errors}")


# Outbound (server -> client)

class ServerEvent(BaseModel):
    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class PeerJoined(ServerEvent):
    type: Literal["peer-joined"] = "peer-joined"
    peer_id: str = Field(alias="peerId")
    room: str


class PeerLeft(ServerEvent):
    type: Literal["peer-left"] = "peer-left"
    peer_id: str = Field(alias="peerId")
    room: str


class HostChanged(ServerEvent):
    type: Literal["host-changed"] = "host-changed"
    new_host_id: str = Field(alias="newHostId")
    room: str


class Heartbeat(ServerEvent):
    type: Literal["ping"] = "ping"
