import socket
import threading
import pytest
from pocketftp.data_channel import DataChannel
from pocketftp.errors import DataConnectionError


def connect(port):
    return socket.create_connection(("127.0.0.1", port), timeout=5)


class TestDataChannel:

    @pytest.fixture
    def channel(self):
        ch = DataChannel(timeout=2)
        yield ch
        ch.close_all()

    def test_open_passive_returns_ephemeral_port(self, channel):
        port = channel.open_passive()
        assert 0 < port < 65536
        assert channel.is_open

    def test_reopen_replaces_listener(self, channel):
        listeners = []
        for _ in range(5):
            channel.open_passive()
            listeners.append(channel.listener)
        # Solo el último sigue abierto
        assert all(l.fileno() == -1 for l in listeners[:-1])
        assert listeners[-1].fileno() != -1

    def test_accept_without_listener(self, channel):
        with pytest.raises(DataConnectionError):
            channel.accept_one()

    def test_accept_timeout(self):
        ch = DataChannel(timeout=0.2)
        ch.open_passive()
        try:
            with pytest.raises(DataConnectionError):
                ch.accept_one()
        finally:
            ch.close_all()

    def test_transfer_closes_everything(self, channel):
        port = channel.open_passive()
        client = connect(port)
        try:
            with channel.transfer() as conn:
                conn.sendall(b"data")
            assert client.recv(16) == b"data"
            assert client.recv(16) == b""
        finally:
            client.close()
        assert channel.listener is None
        assert channel.connection is None
        assert not channel.is_open

    def test_transfer_closes_on_error(self, channel):
        port = channel.open_passive()
        client = connect(port)
        try:
            with pytest.raises(RuntimeError):
                with channel.transfer():
                    raise RuntimeError("boom")
        finally:
            client.close()
        assert channel.listener is None
        assert channel.connection is None

    def test_transfer_closes_when_accept_fails(self):
        ch = DataChannel(timeout=0.2)
        ch.open_passive()
        with pytest.raises(DataConnectionError):
            with ch.transfer():
                pass
        assert ch.listener is None

    def test_close_all_is_idempotent(self, channel):
        channel.open_passive()
        channel.close_all()
        channel.close_all()
        assert not channel.is_open

    def test_close_all_wakes_pending_accept(self):
        ch = DataChannel(timeout=None)
        ch.open_passive()
        errors = []

        def wait_for_client():
            try:
                ch.accept_one()
            except DataConnectionError as e:
                errors.append(e)

        t = threading.Thread(target=wait_for_client, daemon=True)
        t.start()
        t.join(0.2)
        assert t.is_alive()
        ch.close_all()
        t.join(5)
        assert not t.is_alive()
        assert len(errors) == 1
        assert not ch.is_open
