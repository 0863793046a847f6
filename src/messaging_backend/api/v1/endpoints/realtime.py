"""WebSocket entry point of the realtime channel."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, WebSocket

from messaging_backend.realtime.gateway import ChatGateway, get_gateway

from ..dependencies import SessionDep

router = APIRouter(tags=["realtime"])

GatewayDep = Annotated[ChatGateway, Depends(get_gateway)]


@router.websocket("/ws/chat")
async def chat_socket(
    websocket: WebSocket,
    db: SessionDep,
    gateway: GatewayDep,
    token: Annotated[str | None, Query()] = None,
) -> None:
    """Serve one client connection; the token travels as a query parameter."""
    await gateway.serve(websocket, db, token)
