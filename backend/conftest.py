"""Root conftest: load the test environment and route structlog through stdlib logging."""

import os
from pathlib import Path

import pytest
import structlog
from dotenv import dotenv_values, load_dotenv

from shared.logging import shared_processors

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env.tests"
_TEST_ENV = dotenv_values(_ENV_FILE)

load_dotenv(_ENV_FILE, override=True)

# stdlib routing lets caplog capture structlog events
structlog.configure(
    processors=shared_processors(),
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _isolate_chat_env(monkeypatch):
    """Drop CHAT_* variables from the developer's shell so settings see only .env.tests."""
    for key in list(os.environ):
        if key.startswith("CHAT_") and key not in _TEST_ENV:
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
