import pytest

from chat.messaging.router import MessageRouter
from chat.session.registry import PresenceRegistry
from chat.session.session import ChatSession
from chat.tests.helpers.auth import TEST_SALT, TEST_SALT_SECRET
from chat.tests.mocks import InMemoryChatLogRepository, InMemoryUserRepository, MockConnection
from shared.auth.models import User
from shared.auth.password import hash_password
from shared.auth.service import CredentialService


@pytest.fixture
def user_repo():
    return InMemoryUserRepository()


@pytest.fixture
def chat_log():
    return InMemoryChatLogRepository()


@pytest.fixture
def credentials(user_repo):
    return CredentialService(user_repo)


@pytest.fixture
def registry():
    return PresenceRegistry()


@pytest.fixture
def router(registry, chat_log):
    return MessageRouter(registry, chat_log)


@pytest.fixture
def make_session(credentials, router):
    def _make(connection: MockConnection | None = None) -> ChatSession:
        return ChatSession(connection or MockConnection(), credentials, router, salt_secret=TEST_SALT_SECRET)

    return _make


@pytest.fixture
def add_user(user_repo):
    """Store an account whose password hashes with TEST_SALT."""

    def _add(name: str, password: str = "secret") -> str:
        password_hash = hash_password(password, TEST_SALT)
        user_repo.users[name] = User(name=name, password_hash=password_hash, salt=TEST_SALT)
        return password_hash

    return _add


@pytest.fixture
def join(router, make_session):
    """Admit a fresh session under name."""

    async def _join(name: str) -> ChatSession:
        session = make_session()
        assert await router.admit(session, name)
        return session

    return _join
