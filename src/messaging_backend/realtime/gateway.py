"""Realtime gateway: authenticates sockets and fans out new messages.

Each open socket is served by one task running :meth:`ChatGateway.serve`.
The only state shared between those tasks is the :class:`ConnectionRegistry`.
Persistence happens inside the sender's task; pushes to a recipient run as
separate tracked tasks so a slow recipient never delays the sender's
confirmation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketState

from messaging_backend.core.errors import MessagingError, NotFoundError
from messaging_backend.core.security import TokenService, get_token_service
from messaging_backend.schemas.message import MessageResponse
from messaging_backend.services import user_service
from messaging_backend.services.message_service import MessageService, get_message_service

from .events import (
    ConnectionEstablishedEvent,
    ErrorEvent,
    InvalidEventError,
    MessageSentEvent,
    NewMessageEvent,
    OutboundEvent,
    SendMessageEvent,
    dump_outbound,
    parse_inbound,
)
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

INVALID_TOKEN_REASON = "Invalid token"
SUPERSEDED_CLOSE_CODE = 4000
SUPERSEDED_REASON = "Superseded by a newer connection"
SEND_FAILED_MESSAGE = "Failed to send message"
BINARY_FRAME_MESSAGE = "Binary frames are not supported"
INTERNAL_ERROR_REASON = "Internal error"

# Errors a socket write can raise once the peer has gone away.
_TRANSPORT_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class ClientConnection:
    """One authenticated socket together with the sends it has in flight."""

    def __init__(self, user_id: str, websocket: WebSocket) -> None:
        self.user_id = user_id
        self.websocket = websocket
        self.pending: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def is_open(self) -> bool:
        """Return True while the socket can still be written to."""
        return (
            not self._closed
            and self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    async def send(self, event: OutboundEvent) -> None:
        """Write one event to the socket."""
        await self.websocket.send_text(dump_outbound(event))

    async def close(self, code: int, reason: str) -> None:
        """Close the socket from the server side; safe to call twice."""
        if not self.is_open:
            self._closed = True
            return
        self._closed = True
        try:
            await self.websocket.close(code=code, reason=reason)
        except _TRANSPORT_ERRORS as err:
            logger.debug("Closing socket for %s failed: %s", self.user_id, err)

    def mark_closed(self) -> None:
        self._closed = True


class ChatGateway:
    """Owns the connection registry and the per-connection event loop."""

    def __init__(
        self,
        token_service: TokenService | None = None,
        message_service: MessageService | None = None,
        registry: ConnectionRegistry[ClientConnection] | None = None,
    ) -> None:
        self._tokens = token_service or get_token_service()
        self._messages = message_service or get_message_service()
        self.registry: ConnectionRegistry[ClientConnection] = registry or ConnectionRegistry()
        self._pending: set[asyncio.Task[None]] = set()

    # Lifecycle -----------------------------------------------------------------

    async def serve(self, websocket: WebSocket, db: Session, token: str | None) -> None:
        """Run one socket from handshake to teardown."""
        conn = await self.connect(websocket, db, token)
        if conn is None:
            return
        clean = False
        try:
            await conn.send(ConnectionEstablishedEvent(user_id=conn.user_id))
            logger.info("User %s connected (%d online)", conn.user_id, len(self.registry))
            await self._receive_loop(conn, db)
            clean = True
        except _TRANSPORT_ERRORS as err:
            logger.info("Connection for %s dropped: %s", conn.user_id, err)
        except Exception:
            logger.exception("Realtime connection for %s failed", conn.user_id)
        finally:
            if not clean:
                await conn.close(status.WS_1011_INTERNAL_ERROR, INTERNAL_ERROR_REASON)
            await self.disconnect(conn, db)

    async def connect(
        self, websocket: WebSocket, db: Session, token: str | None
    ) -> ClientConnection | None:
        """Authenticate, accept and register a socket.

        Returns ``None`` after closing the socket if the token is missing,
        invalid, expired or names a user that no longer exists. The
        acknowledgment is sent by :meth:`serve` so that a failed write still
        goes through teardown.
        """
        user_id = self._tokens.extract_user_id(token)
        if user_id is not None:
            try:
                user_service.get_user(db, user_id)
            except NotFoundError:
                user_id = None
        if user_id is None:
            logger.info("Rejected realtime connection: invalid token")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=INVALID_TOKEN_REASON)
            return None

        await websocket.accept()
        conn = ClientConnection(user_id, websocket)
        previous = await self.registry.register(user_id, conn)
        if previous is not None:
            logger.info("Closing superseded connection for %s", user_id)
            await previous.close(SUPERSEDED_CLOSE_CODE, SUPERSEDED_REASON)

        try:
            user_service.set_online(db, user_id, True)
        except (MessagingError, SQLAlchemyError) as err:
            db.rollback()
            logger.warning("Could not mark %s online: %s", user_id, err)
        return conn

    async def disconnect(self, conn: ClientConnection, db: Session) -> None:
        """Tear down a connection once its receive loop has ended."""
        if conn.pending:
            await asyncio.gather(*list(conn.pending), return_exceptions=True)
        conn.mark_closed()
        removed = await self.registry.unregister(conn.user_id, conn)
        if not removed:
            logger.info("Superseded connection for %s closed", conn.user_id)
            return
        try:
            user_service.set_online(db, conn.user_id, False)
        except (MessagingError, SQLAlchemyError) as err:
            db.rollback()
            logger.warning("Could not mark %s offline: %s", conn.user_id, err)
        logger.info("User %s disconnected (%d online)", conn.user_id, len(self.registry))

    async def drain(self) -> None:
        """Wait for every in-flight delivery; used at shutdown."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # Inbound -------------------------------------------------------------------

    async def _receive_loop(self, conn: ClientConnection, db: Session) -> None:
        while True:
            message = await conn.websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            raw = message.get("text")
            if raw is None:
                logger.info("Binary frame from %s rejected", conn.user_id)
                await conn.send(ErrorEvent(message=BINARY_FRAME_MESSAGE))
                continue
            await self.dispatch(conn, db, raw)

    async def dispatch(self, conn: ClientConnection, db: Session, raw: str) -> None:
        """Handle one inbound frame; never raises for bad client input."""
        try:
            event = parse_inbound(raw)
        except InvalidEventError as err:
            logger.info("Bad event from %s: %s", conn.user_id, err)
            await conn.send(ErrorEvent(message=str(err)))
            return

        if event is None:
            logger.debug("Ignoring unhandled event type from %s", conn.user_id)
            return
        if isinstance(event, SendMessageEvent):
            await self._handle_send(conn, db, event)

    async def _handle_send(
        self, conn: ClientConnection, db: Session, event: SendMessageEvent
    ) -> None:
        # Sender identity always comes from the authenticated connection.
        try:
            message = self._messages.send(
                db,
                conn.user_id,
                event.receiver_id,
                event.content,
                event.message_type,
            )
        except MessagingError as err:
            logger.info("Send from %s rejected: %s", conn.user_id, err.message)
            await conn.send(ErrorEvent(message=err.message))
            return
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to persist message from %s", conn.user_id)
            await conn.send(ErrorEvent(message=SEND_FAILED_MESSAGE))
            return

        payload = MessageResponse.model_validate(message)
        recipient = await self.registry.lookup(payload.receiver_id)
        if recipient is not None and recipient.is_open:
            self._schedule(conn, self._deliver(recipient, db, payload))
        else:
            logger.debug("Receiver %s offline; message %s stored only", payload.receiver_id, payload.id)

        await conn.send(MessageSentEvent(message=payload))

    # Outbound ------------------------------------------------------------------

    def _schedule(self, owner: ClientConnection, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        owner.pending.add(task)

        def _done(t: asyncio.Task[None]) -> None:
            self._pending.discard(t)
            owner.pending.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error("Delivery task failed", exc_info=t.exception())

        task.add_done_callback(_done)

    async def _deliver(
        self, recipient: ClientConnection, db: Session, payload: MessageResponse
    ) -> None:
        try:
            await recipient.send(NewMessageEvent(message=payload))
        except _TRANSPORT_ERRORS as err:
            logger.warning("Push of %s to %s failed: %s", payload.id, recipient.user_id, err)
            return
        try:
            self._messages.mark_delivered(db, payload.id)
        except (MessagingError, SQLAlchemyError) as err:
            db.rollback()
            logger.warning("Could not mark %s delivered: %s", payload.id, err)
            return
        logger.debug("Delivered %s to %s", payload.id, recipient.user_id)


def get_gateway(websocket: WebSocket) -> ChatGateway:
    """Return the gateway created for the running application."""
    gateway: ChatGateway | None = getattr(websocket.app.state, "gateway", None)
    if gateway is None:
        gateway = ChatGateway()
        websocket.app.state.gateway = gateway
    return gateway
