import pytest

from chat.server.acceptor import ChatServer
from chat.server.settings import ChatServerSettings
from chat.server.tls import TLSConfigError


class TestChatServerStartup:
    async def test_refuses_to_start_without_tls(self, tmp_path):
        settings = ChatServerSettings(
            keystore_path=str(tmp_path / "absent.p12"),
            ssl_keypassword=None,
            db_url=str(tmp_path / "chat.db"),
        )
        server = ChatServer(settings)

        with pytest.raises(TLSConfigError):
            await server.start()

        assert not server.is_serving
        assert not (tmp_path / "chat.db").exists()

    def test_port_before_start(self):
        with pytest.raises(RuntimeError, match="not listening"):
            _ = ChatServer(ChatServerSettings()).port

    async def test_stop_before_start_is_noop(self):
        await ChatServer(ChatServerSettings()).stop()

    def test_configured_salt_secret_is_used(self):
        server = ChatServer(ChatServerSettings(salt_secret="s" * 32))
        assert server._salt_secret == b"s" * 32

    def test_random_salt_secret_per_process(self):
        assert ChatServer(ChatServerSettings())._salt_secret != ChatServer(ChatServerSettings())._salt_secret
