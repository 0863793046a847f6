"""Message-related Pydantic schemas."""

from datetime import datetime

from pydantic import AliasChoices, Field

from messaging_backend.models.message import MessageType

from .common import CamelModel


class MessageCreate(CamelModel):
    """Schema for sending a message over REST."""

    receiver_id: str = Field(..., description="ID of the receiving user")
    content: str = Field(..., description="Message body or attachment URL")
    type: MessageType = Field(MessageType.TEXT, description="Payload kind")


class MessageResponse(CamelModel):
    """Schema for message information returned by the API."""

    id: str
    sender_id: str
    receiver_id: str
    chat_id: str
    content: str
    type: MessageType
    timestamp: datetime
    read: bool = Field(validation_alias=AliasChoices("is_read", "read"))
    delivered: bool = Field(validation_alias=AliasChoices("is_delivered", "delivered"))
