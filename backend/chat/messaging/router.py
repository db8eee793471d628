from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from chat.messaging.types import (
    AuthReply,
    ChatMessage,
    PrivateMessage,
    chat_broadcast,
    history,
    private_delivery,
    system_notice,
    user_list,
)
from chat.session.types import (
    BROADCAST_LINE,
    JOIN_ANNOUNCEMENT,
    LEAVE_ANNOUNCEMENT,
    RECIPIENT_OFFLINE_NOTICE,
    SessionPhase,
)
from shared.dal.models import LogLevel

if TYPE_CHECKING:
    from chat.messaging.types import ClientMessage
    from chat.session.registry import PresenceRegistry
    from chat.session.session import ChatSession
    from shared.dal.chat_log_repository import ChatLogRepository

logger = structlog.get_logger()

DEFAULT_HISTORY_LIMIT = 50

# A peer that vanished mid-write is skipped; its own session notices the
# broken stream and closes itself.
_DELIVERY_ERRORS = (ConnectionError, OSError, RuntimeError)


class MessageRouter:
    """
    Fan-out of broadcast, directed, roster and history messages.

    Targets come from the presence registry; every routed user message is
    recorded through the chat log after delivery. This class contains no
    socket code and can be tested with mock connections.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        chat_log: ChatLogRepository,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._registry = registry
        self._chat_log = chat_log
        self._history_limit = history_limit

    @property
    def registry(self) -> PresenceRegistry:
        return self._registry

    async def handle_message(self, session: ChatSession, message: ClientMessage) -> None:
        """Route a message from a joined session. Other types are ignored."""
        name = session.name
        if name is None:
            return
        if isinstance(message, ChatMessage):
            await self.broadcast(name, BROADCAST_LINE.format(name=name, content=message.data.content), LogLevel.USER)
        elif isinstance(message, PrivateMessage):
            await self.direct(session, message.data.to, message.data.content)
        else:
            logger.debug("ignoring message type while joined", message_type=message.type, username=name)

    async def admit(self, session: ChatSession, name: str) -> bool:
        """Join a freshly authenticated session.

        The registry insert, the login reply and the history read and
        replay all happen under the session's write lock. A broadcast that
        already sees the new member waits on that lock and lands after the
        replay. Returns False, with nothing sent, if the name is already
        joined.
        """
        connection = session.connection
        async with connection.write_lock:
            if not await self._registry.insert(name, session):
                return False
            if session.phase is not SessionPhase.PREAUTH:
                # closed while waiting for the registry
                await self._registry.remove(name, session)
                return False
            session.mark_joined(name)
            await connection.write_message(AuthReply.SUCCESS)
            replayed = await self.push_history(session)

        logger.info("user joined", username=name, online=len(self._registry), replayed=replayed)
        await self.broadcast(name, JOIN_ANNOUNCEMENT.format(name=name), LogLevel.SYSTEM)
        await self.push_roster()
        return True

    async def release(self, session: ChatSession) -> None:
        """Deregister a departing session and announce it to everyone left."""
        name = session.name
        if name is None:
            return
        if not await self._registry.remove(name, session):
            return
        logger.info("user left", username=name, online=len(self._registry))
        await self.broadcast(name, LEAVE_ANNOUNCEMENT.format(name=name), LogLevel.SYSTEM)
        await self.push_roster()

    async def broadcast(self, sender_name: str, body: str, level: LogLevel) -> None:
        """Deliver body to every joined session, sender included, then log it."""
        message = chat_broadcast(sender_name, body)
        targets = await self._registry.snapshot()
        for session in targets.values():
            await self._deliver(session, message)
        await self._chat_log.append(sender_name, None, body, level)

    async def direct(self, sender: ChatSession, to_name: str, body: str) -> bool:
        """Deliver body to one named session; tell the sender if it is not online.

        Only a delivered message is logged. Returns True on delivery.
        """
        sender_name = sender.name
        if sender_name is None:
            return False
        target = await self._registry.lookup(to_name)
        if target is not None and await self._deliver(target, private_delivery(sender_name, to_name, body)):
            await self._chat_log.append(sender_name, to_name, body, LogLevel.USER)
            return True

        await self._deliver(sender, system_notice(RECIPIENT_OFFLINE_NOTICE.format(name=to_name)))
        return False

    async def push_roster(self) -> None:
        """Send the current roster to every joined session."""
        targets = await self._registry.snapshot()
        message = user_list(list(targets))
        for session in targets.values():
            await self._deliver(session, message)

    async def push_history(self, session: ChatSession) -> int:
        """Replay recent history visible to the session's user, oldest first.

        The caller holds the session's write lock. Returns the number of
        lines sent.
        """
        if session.name is None:
            return 0
        lines = await self._chat_log.recent(self._history_limit, session.name)
        for line in lines:
            await session.connection.write_message(history(line))
        return len(lines)

    async def _deliver(self, session: ChatSession, message: dict[str, Any]) -> bool:
        try:
            await session.connection.send_message(message)
        except _DELIVERY_ERRORS as e:
            logger.debug("delivery failed", username=session.name, error=str(e))
            return False
        return True
