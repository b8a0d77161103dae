"""
pytest configuration and fixtures.
"""

import socket
import threading
from dataclasses import dataclass
from typing import Callable, Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gameserver import GameServer, ServerConfig
from gameserver.game.packet import PACKET_SIZE, Packet


@dataclass(eq=False)
class Peer:
    """Stand-in connection handle for session tests."""
    id: str


class RecordingOutbox:
    """In-memory Outbox: remembers everything the session sends or drops."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.dropped: List[Peer] = []

    def send(self, handle, packet: Packet) -> None:
        self.sent.append((handle, packet))

    def drop(self, handle) -> None:
        self.dropped.append(handle)

    def to(self, handle) -> List[Packet]:
        """Packets sent to one handle, in order."""
        return [packet for h, packet in self.sent if h is handle]

    def clear(self):
        self.sent.clear()
        self.dropped.clear()


@pytest.fixture
def outbox() -> RecordingOutbox:
    return RecordingOutbox()


@pytest.fixture
def peers() -> List[Peer]:
    """Four distinct handles: alice, bob, carol, dave."""
    return [Peer("alice"), Peer("bob"), Peer("carol"), Peer("dave")]


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        reset_delay=0.2,
        poll_interval=0.05,
        max_queued=0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


# =============================================================================
# CLIENT HELPERS
# =============================================================================


def recv_exact(sock: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def recv_packet(sock: socket.socket) -> Optional[Packet]:
    """Read one packet, or None if the server closed the connection."""
    data = recv_exact(sock, PACKET_SIZE)
    if len(data) < PACKET_SIZE:
        return None
    return Packet.decode(data)


def send_move(sock: socket.socket, row: int, col: int):
    sock.sendall(Packet.move(row, col).encode())


# =============================================================================
# LIVE SERVER
# =============================================================================


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: GameServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None
        self._clients: List[socket.socket] = []

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_listening(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def connect(self) -> socket.socket:
        """Open a client connection with a generous read timeout."""
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        self._clients.append(sock)
        return sock

    def stop(self):
        """Stop the server."""
        for sock in self._clients:
            sock.close()

        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def start_server(config: ServerConfig) -> Generator[Callable[..., TestServer], None, None]:
    """Factory: start_server(**overrides) runs a server with tweaked config."""
    started: List[TestServer] = []

    def _start(**overrides) -> TestServer:
        for key, value in overrides.items():
            setattr(config, key, value)
        test_srv = TestServer(GameServer(config))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield _start

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(start_server) -> TestServer:
    """A running server with the default test configuration."""
    return start_server()
