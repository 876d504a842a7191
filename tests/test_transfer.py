import socket
import pytest
from conftest import recv_all
from pocketftp import transfer


@pytest.fixture
def data_client(logged_in_pair):
    session, _ = logged_in_pair
    port = session.data_channel.open_passive()
    sock = socket.create_connection(("127.0.0.1", port), timeout=5)
    yield sock
    sock.close()


class TestSendFile:

    def test_sends_file_and_replies(self, logged_in_pair, data_client, ftp_root):
        session, peer = logged_in_pair
        assert transfer.send_file(session, str(ftp_root / "hello.txt")) is True
        assert recv_all(data_client) == b"Hello, FTP!\n"
        opening, done = peer.lines(2)
        assert opening.startswith("150") and "(12 bytes)" in opening
        assert done.startswith("226")
        assert not session.data_channel.is_open

    def test_missing_source_aborts(self, logged_in_pair, data_client, ftp_root):
        session, peer = logged_in_pair
        assert transfer.send_file(session, str(ftp_root / "gone.bin")) is False
        reply = peer.line()
        assert reply.startswith("426")
        assert str(ftp_root) not in reply
        assert not session.data_channel.is_open


class TestReceiveFile:

    def test_writes_stream_to_disk(self, logged_in_pair, data_client, ftp_root):
        session, peer = logged_in_pair
        data_client.sendall(b"abc" * 5000)
        data_client.shutdown(socket.SHUT_WR)
        assert transfer.receive_file(session, str(ftp_root / "up.bin")) is True
        assert (ftp_root / "up.bin").read_bytes() == b"abc" * 5000
        assert [line[:3] for line in peer.lines(2)] == ["150", "226"]
        assert not session.data_channel.is_open

    def test_unwritable_target_aborts(self, logged_in_pair, data_client, ftp_root):
        session, peer = logged_in_pair
        data_client.shutdown(socket.SHUT_WR)
        assert transfer.receive_file(session, str(ftp_root / "sub")) is False
        opening, aborted = peer.lines(2)
        assert opening.startswith("150")
        assert aborted.startswith("426")
        assert "sub" not in aborted[3:]
        assert not session.data_channel.is_open


class TestSendListing:

    def test_listing(self, logged_in_pair, data_client, ftp_root):
        session, peer = logged_in_pair
        assert transfer.send_listing(session, str(ftp_root)) is True
        lines = recv_all(data_client).decode().split("\r\n")
        assert len(lines) == 3 and lines[-1] == ""
        assert [line[:3] for line in peer.lines(2)] == ["150", "226"]

    def test_unlistable_directory(self, logged_in_pair, data_client, ftp_root):
        session, peer = logged_in_pair
        assert transfer.send_listing(session, str(ftp_root / "missing")) is False
        assert recv_all(data_client) == b""
        assert [line[:3] for line in peer.lines(2)] == ["150", "426"]
        assert not session.data_channel.is_open

    def test_no_listener(self, logged_in_pair):
        session, peer = logged_in_pair
        assert transfer.send_listing(session, str(session.root_dir)) is False
        assert peer.line().startswith("425")
