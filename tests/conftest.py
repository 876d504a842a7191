import os
import re
import socket
import pytest
from pocketftp.server_core import Session, start_server, stop_server

USERNAME = "admin"
PASSWORD = "admin"


@pytest.fixture
def ftp_root(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"Hello, FTP!\n")
    (root / "sub").mkdir()
    (root / "sub" / "nested.txt").write_bytes(b"nested\n")
    (root / "sub" / "deeper").mkdir()
    return root


class PeerReader:
    """Lado cliente de un socketpair: lee las respuestas que envía la sesión."""

    def __init__(self, sock):
        self.sock = sock
        self.sock.settimeout(5)
        self.buffer = b""

    def line(self):
        while b"\r\n" not in self.buffer:
            chunk = self.sock.recv(4096)
            if not chunk:
                raise EOFError("peer closed")
            self.buffer += chunk
        raw, self.buffer = self.buffer.split(b"\r\n", 1)
        return raw.decode()

    def lines(self, count):
        return [self.line() for _ in range(count)]


@pytest.fixture
def session_pair(ftp_root):
    """Session sobre un socketpair, sin servidor ni hilos."""
    server_side, client_side = socket.socketpair()
    session = Session(server_side, ("127.0.0.1", 50000), str(ftp_root), USERNAME, PASSWORD, data_timeout=5)
    peer = PeerReader(client_side)
    yield session, peer
    session.close()
    client_side.close()


@pytest.fixture
def logged_in_pair(session_pair):
    session, peer = session_pair
    session.logged_in = True
    return session, peer


class ControlClient:
    """Cliente FTP mínimo sobre sockets para comprobar códigos exactos."""

    def __init__(self, host, port):
        self.sock = socket.create_connection((host, port), timeout=10)
        self.reader = self.sock.makefile("rb")

    def read_reply(self):
        line = self.reader.readline().decode().rstrip("\r\n")
        if not line:
            raise EOFError("server closed the control connection")
        # Respuestas multilínea: "211-..." hasta "211 ..."
        if len(line) > 3 and line[3] == "-":
            code = line[:3]
            lines = [line]
            while True:
                nxt = self.reader.readline().decode().rstrip("\r\n")
                lines.append(nxt)
                if nxt.startswith(code + " "):
                    break
            return "\n".join(lines)
        return line

    def send(self, line):
        self.sock.sendall(f"{line}\r\n".encode())

    def cmd(self, line):
        self.send(line)
        return self.read_reply()

    def login(self, user=USERNAME, password=PASSWORD):
        assert self.cmd(f"USER {user}").startswith("331")
        return self.cmd(f"PASS {password}")

    def pasv(self):
        reply = self.cmd("PASV")
        assert reply.startswith("227"), reply
        numbers = [int(n) for n in re.search(r"\((\d+(?:,\d+){5})\)", reply).group(1).split(",")]
        host = ".".join(str(n) for n in numbers[:4])
        port = numbers[4] * 256 + numbers[5]
        return host, port

    def open_data(self):
        host, port = self.pasv()
        return socket.create_connection((host, port), timeout=5)

    def close(self):
        self.reader.close()
        self.sock.close()


@pytest.fixture
def server(ftp_root):
    srv = start_server(0, str(ftp_root), USERNAME, PASSWORD, host="127.0.0.1",
                       control_timeout=10, data_timeout=2)
    yield srv
    stop_server(srv)


@pytest.fixture
def client(server):
    c = ControlClient("127.0.0.1", server.port)
    assert c.read_reply().startswith("220")
    yield c
    c.close()


def recv_all(sock):
    chunks = []
    while True:
        chunk = sock.recv(65536)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def listdir(path):
    return sorted(os.listdir(path))
