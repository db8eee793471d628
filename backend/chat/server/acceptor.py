"""TLS listener: one ChatSession task per accepted connection."""

from __future__ import annotations

import asyncio
import contextlib
import secrets
from typing import TYPE_CHECKING

import structlog

from chat.messaging.router import MessageRouter
from chat.server.connection import StreamConnection
from chat.server.tls import build_server_ssl_context
from chat.session.registry import PresenceRegistry
from chat.session.session import ChatSession
from shared.auth.service import CredentialService
from shared.db import Database, SqliteChatLogRepository, SqliteUserRepository

if TYPE_CHECKING:
    import ssl
    from asyncio import StreamReader, StreamWriter

    from chat.server.settings import ChatServerSettings

logger = structlog.get_logger()


class ChatServer:
    """Own the listener, the database and every live session.

    start() opens the database and binds the TLS socket; stop() reverses
    it: no new connections, live sessions closed (each announcing its
    departure), then the database closed.
    """

    def __init__(
        self,
        settings: ChatServerSettings,
        *,
        ssl_context: ssl.SSLContext | None = None,
    ) -> None:
        self._settings = settings
        self._ssl_context = ssl_context
        self._db: Database | None = None
        self._server: asyncio.Server | None = None
        self._credentials: CredentialService | None = None
        self._router: MessageRouter | None = None
        self._sessions: dict[asyncio.Task[None], ChatSession] = {}
        if settings.salt_secret is not None:
            self._salt_secret = settings.salt_secret.encode("utf-8")
        else:
            self._salt_secret = secrets.token_bytes(32)

    @property
    def router(self) -> MessageRouter | None:
        return self._router

    @property
    def port(self) -> int:
        """Bound port; differs from settings.port when that was 0."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("server is not listening")
        return self._server.sockets[0].getsockname()[1]

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        if self._server is not None:
            raise RuntimeError("server already started")

        # TLS first: a misconfigured certificate must stop startup before
        # anything else is opened.
        ssl_context = self._ssl_context or build_server_ssl_context(self._settings)

        db = Database(self._settings.database_path)
        db.connect()
        self._db = db
        self._credentials = CredentialService(SqliteUserRepository(db))
        self._router = MessageRouter(
            PresenceRegistry(),
            SqliteChatLogRepository(db),
            history_limit=self._settings.history_limit,
        )

        try:
            self._server = await asyncio.start_server(
                self._handle_connection,
                host=self._settings.host,
                port=self._settings.port,
                ssl=ssl_context,
            )
        except OSError:
            db.close()
            self._db = None
            raise
        logger.info("chat server listening", host=self._settings.host, port=self.port)

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        server = self._server
        if server is None:  # pragma: no cover
            raise RuntimeError("server failed to start")
        with contextlib.suppress(asyncio.CancelledError):
            await server.serve_forever()

    async def stop(self) -> None:
        """Graceful shutdown, bounded by shutdown_grace_seconds."""
        server = self._server
        if server is None:
            return
        self._server = None
        server.close()
        logger.info("chat server stopping", sessions=len(self._sessions))

        sessions = list(self._sessions.items())
        if sessions:
            await asyncio.gather(*(session.close() for _, session in sessions), return_exceptions=True)
            tasks = [task for task, _ in sessions]
            _, pending = await asyncio.wait(tasks, timeout=self._settings.shutdown_grace_seconds)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("sessions did not finish in time", count=len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(server.wait_closed(), timeout=self._settings.shutdown_grace_seconds)

        if self._db is not None:
            self._db.close()
            self._db = None
        logger.info("chat server stopped")

    async def _handle_connection(self, reader: StreamReader, writer: StreamWriter) -> None:
        credentials, router = self._credentials, self._router
        if credentials is None or router is None or self._server is None:
            writer.close()
            return

        connection = StreamConnection(
            reader,
            writer,
            read_timeout=self._settings.read_timeout_seconds,
            write_timeout=self._settings.write_timeout_seconds,
        )
        session = ChatSession(connection, credentials, router, salt_secret=self._salt_secret)
        task = asyncio.current_task()
        if task is None:  # pragma: no cover
            await connection.close()
            return

        self._sessions[task] = session
        logger.info(
            "connection accepted",
            connection_id=connection.connection_id,
            peer=connection.peer,
            tls_version=connection.tls_version,
        )
        try:
            await session.run()
        finally:
            self._sessions.pop(task, None)
