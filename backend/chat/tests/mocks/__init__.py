from chat.tests.mocks.connection import MockConnection
from chat.tests.mocks.repositories import InMemoryChatLogRepository, InMemoryUserRepository

__all__ = ["InMemoryChatLogRepository", "InMemoryUserRepository", "MockConnection"]
