"""Registry of live connections keyed by user identity."""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

ConnT = TypeVar("ConnT")


class ConnectionRegistry(Generic[ConnT]):
    """Maps a user ID to at most one live connection handle.

    Registration is last-writer-wins. All mutations and lookups go through an
    ``asyncio.Lock``; callers must never hold it across I/O, which is why the
    lock is private and only taken inside the three operations below.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnT] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, connection: ConnT) -> ConnT | None:
        """Bind ``connection`` to ``user_id`` and return the handle it replaced."""
        async with self._lock:
            previous = self._connections.get(user_id)
            self._connections[user_id] = connection
        return previous if previous is not connection else None

    async def lookup(self, user_id: str) -> ConnT | None:
        """Return the live handle for ``user_id``, if any."""
        async with self._lock:
            return self._connections.get(user_id)

    async def unregister(self, user_id: str, connection: ConnT) -> bool:
        """Remove the entry only if it still points at ``connection``.

        Returns True when the entry was removed. A newer connection for the
        same user is left untouched.
        """
        async with self._lock:
            if self._connections.get(user_id) is not connection:
                return False
            del self._connections[user_id]
            return True

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
