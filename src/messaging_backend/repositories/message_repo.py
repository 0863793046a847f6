"""Data access helpers for working with messages."""
from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from messaging_backend.models.message import Message

__all__ = ["MessageRepository"]


class MessageRepository:
    """Thin wrapper around database access for message entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_by_id(self, message_id: str) -> Message | None:
        """Return a message by identifier."""
        return self.session.get(Message, message_id)

    def add(self, message: Message) -> Message:
        """Insert a new message and return the persisted ORM instance."""
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_between(self, user_a: str, user_b: str) -> Sequence[Message]:
        """Return messages exchanged by the pair in either direction, oldest first."""
        stmt = (
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                    and_(Message.sender_id == user_b, Message.receiver_id == user_a),
                )
            )
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )
        return self.session.scalars(stmt).all()

    def count_unread_for(self, receiver_id: str) -> int:
        """Count messages addressed to ``receiver_id`` that are still unread."""
        stmt = (
            select(func.count())
            .select_from(Message)
            .where(Message.receiver_id == receiver_id, Message.is_read.is_(False))
        )
        return int(self.session.scalar(stmt) or 0)

    def list_unread_from(self, receiver_id: str, sender_id: str) -> Sequence[Message]:
        """Return unread messages sent by ``sender_id`` to ``receiver_id``, oldest first."""
        stmt = (
            select(Message)
            .where(
                Message.sender_id == sender_id,
                Message.receiver_id == receiver_id,
                Message.is_read.is_(False),
            )
            .order_by(Message.timestamp.asc(), Message.id.asc())
        )
        return self.session.scalars(stmt).all()

    def save(self, message: Message) -> Message:
        """Commit pending changes on an existing message."""
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def save_all(self, messages: Sequence[Message]) -> list[Message]:
        """Commit pending changes on several messages in one transaction."""
        self.session.add_all(messages)
        self.session.commit()
        for message in messages:
            self.session.refresh(message)
        return list(messages)
