"""Live connection tracking and realtime message delivery."""

from .gateway import ChatGateway, ClientConnection, get_gateway
from .registry import ConnectionRegistry

__all__ = ["ChatGateway", "ClientConnection", "ConnectionRegistry", "get_gateway"]
