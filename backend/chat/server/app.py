import asyncio
import contextlib
import signal
import sys

import structlog
from pydantic import ValidationError

from chat.server.acceptor import ChatServer
from chat.server.settings import ChatServerSettings
from chat.server.tls import TLSConfigError
from shared.logging import setup_logging

logger = structlog.get_logger()


async def run_server(settings: ChatServerSettings) -> None:
    """Serve until SIGINT/SIGTERM, then shut down gracefully."""
    server = ChatServer(settings)
    await server.start()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # not available on every platform's event loop
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    serve_task = asyncio.create_task(server.serve_forever())
    try:
        await stop_event.wait()
    finally:
        logger.info("shutdown requested")
        await server.stop()
        serve_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await serve_task


def main() -> None:  # pragma: no cover
    """Console entry point for ``chat-server``."""
    try:
        settings = ChatServerSettings()
    except ValidationError as e:
        setup_logging()
        logger.error("invalid configuration", error=str(e))
        sys.exit(2)

    setup_logging(log_dir=settings.log_dir)
    try:
        asyncio.run(run_server(settings))
    except TLSConfigError as e:
        logger.error("tls configuration error", error=str(e))
        sys.exit(1)
    except OSError as e:
        logger.error("cannot start listener", error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":  # pragma: no cover
    main()
