"""Authoritative registry of joined participants."""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from chat.session.session import ChatSession


class PresenceRegistry:
    """Map of name -> joined session with unique keys.

    One lock guards every mutation and every read. snapshot() returns a
    frozen copy, so fan-out can iterate (and yield on sends) while other
    sessions join or leave.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._lock = asyncio.Lock()

    async def insert(self, name: str, session: ChatSession) -> bool:
        """Bind name to session. Returns False if the name is already joined."""
        async with self._lock:
            if name in self._sessions:
                return False
            self._sessions[name] = session
            return True

    async def remove(self, name: str, session: ChatSession | None = None) -> bool:
        """Unbind name. Idempotent; returns True only if a binding was removed.

        When session is given, the binding is removed only if it still
        points at that session.
        """
        async with self._lock:
            current = self._sessions.get(name)
            if current is None or (session is not None and current is not session):
                return False
            del self._sessions[name]
            return True

    async def snapshot(self) -> Mapping[str, ChatSession]:
        async with self._lock:
            return MappingProxyType(dict(self._sessions))

    async def lookup(self, name: str) -> ChatSession | None:
        async with self._lock:
            return self._sessions.get(name)

    def __len__(self) -> int:
        return len(self._sessions)
