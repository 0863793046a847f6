"""Wire schema of the realtime channel.

Inbound and outbound events are closed sets of tagged models. Unknown
fields are rejected; unknown inbound tags are reported as ``None`` so the
caller can ignore them.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from messaging_backend.models.message import MessageType
from messaging_backend.schemas.message import MessageResponse


class InvalidEventError(ValueError):
    """Raised when an inbound frame cannot be decoded into a known event."""


class _Event(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class SendMessageEvent(_Event):
    """Client request to send a message to another user."""

    type: Literal["SEND_MESSAGE"] = "SEND_MESSAGE"
    receiver_id: str
    content: str
    message_type: MessageType = MessageType.TEXT


class ConnectionEstablishedEvent(_Event):
    type: Literal["CONNECTION_ESTABLISHED"] = "CONNECTION_ESTABLISHED"
    user_id: str


class NewMessageEvent(_Event):
    type: Literal["NEW_MESSAGE"] = "NEW_MESSAGE"
    message: MessageResponse


class MessageSentEvent(_Event):
    type: Literal["MESSAGE_SENT"] = "MESSAGE_SENT"
    message: MessageResponse


class ErrorEvent(_Event):
    type: Literal["ERROR"] = "ERROR"
    message: str


InboundEvent = SendMessageEvent

OutboundEvent = Annotated[
    Union[ConnectionEstablishedEvent, NewMessageEvent, MessageSentEvent, ErrorEvent],
    Field(discriminator="type"),
]

INBOUND_EVENTS: dict[str, type[InboundEvent]] = {
    "SEND_MESSAGE": SendMessageEvent,
}

outbound_adapter: TypeAdapter[OutboundEvent] = TypeAdapter(OutboundEvent)


def parse_inbound(raw: str | bytes) -> InboundEvent | None:
    """Decode a client frame.

    Returns ``None`` for frames whose tag is not handled by the server.

    Raises:
        InvalidEventError: If the frame is not a JSON object or a known tag
            carries a payload that does not match its schema.
    """
    try:
        data: Any = json.loads(raw)
    except (TypeError, ValueError) as err:
        raise InvalidEventError("Malformed event payload") from err
    if not isinstance(data, dict):
        raise InvalidEventError("Event payload must be a JSON object")

    tag = data.get("type")
    model = INBOUND_EVENTS.get(tag) if isinstance(tag, str) else None
    if model is None:
        return None
    try:
        return model.model_validate(data)
    except SchemaError as err:
        fields = ", ".join(".".join(str(p) for p in e["loc"]) or "event" for e in err.errors())
        raise InvalidEventError(f"Invalid {data['type']} event: {fields}") from err


def dump_outbound(event: OutboundEvent) -> str:
    """Serialize an outbound event with camelCase keys."""
    return event.model_dump_json(by_alias=True)
