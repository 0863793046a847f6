"""Persistence and read-state tracking for direct messages."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from messaging_backend.core.errors import NotFoundError, ValidationError
from messaging_backend.models import Message, MessageType
from messaging_backend.repositories import MessageRepository

logger = logging.getLogger(__name__)

CHAT_ID_SEPARATOR = "_"


def conversation_key(user_a: str, user_b: str) -> str:
    """Return the key shared by both directions of a conversation.

    The lexicographically smaller ID comes first, so the result does not
    depend on who sent the message.
    """
    first, second = sorted((user_a, user_b))
    return f"{first}{CHAT_ID_SEPARATOR}{second}"


class MessageService:
    """Service storing messages and tracking their read/delivered flags."""

    def send(
        self,
        db: Session,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: MessageType | str = MessageType.TEXT,
    ) -> Message:
        """Persist a new unread, undelivered message.

        Raises:
            ValidationError: If the receiver or content is blank, or the type is unknown.
        """
        if not receiver_id or not receiver_id.strip():
            raise ValidationError("Receiver is required")
        if not content or not content.strip():
            raise ValidationError("Message content must not be blank")
        try:
            kind = MessageType(message_type)
        except ValueError as err:
            raise ValidationError(f"Unknown message type: {message_type}") from err

        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            chat_id=conversation_key(sender_id, receiver_id),
            content=content,
            type=kind,
            is_read=False,
            is_delivered=False,
        )
        message = MessageRepository(db).add(message)
        logger.debug("Stored message %s in chat %s", message.id, message.chat_id)
        return message

    def history(self, db: Session, user_a: str, user_b: str) -> Sequence[Message]:
        """Return the conversation between two users, oldest first."""
        return MessageRepository(db).list_between(user_a, user_b)

    def unread_count(self, db: Session, user_id: str) -> int:
        """Return how many messages addressed to ``user_id`` are unread."""
        return MessageRepository(db).count_unread_for(user_id)

    def mark_read(self, db: Session, message_id: str) -> Message:
        """Set the read flag; calling it again is a no-op."""
        repo = MessageRepository(db)
        message = repo.get_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.is_read:
            return message
        message.is_read = True
        return repo.save(message)

    def mark_all_read(self, db: Session, receiver_id: str, sender_id: str) -> list[Message]:
        """Mark every unread message from ``sender_id`` to ``receiver_id`` as read.

        Returns only the messages this call changed.
        """
        repo = MessageRepository(db)
        unread = repo.list_unread_from(receiver_id, sender_id)
        if not unread:
            return []
        for message in unread:
            message.is_read = True
        return repo.save_all(unread)

    def mark_delivered(self, db: Session, message_id: str) -> Message:
        """Record that the message reached the receiver's live connection."""
        repo = MessageRepository(db)
        message = repo.get_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        if message.is_delivered:
            return message
        message.is_delivered = True
        return repo.save(message)


_message_service: MessageService | None = None


def get_message_service() -> MessageService:
    """Return the shared message service."""
    global _message_service
    if _message_service is None:
        _message_service = MessageService()
    return _message_service
