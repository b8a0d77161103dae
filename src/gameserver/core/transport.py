"""
=============================================================================
TRANSPORT LAYER
=============================================================================

Owns the listening socket and the set of connected peers, and turns OS
readiness into connection events for the session.

=============================================================================
ONE THREAD, MANY SOCKETS: selectors
=============================================================================

A thread-per-connection server would block in recv() on each client. We
only ever run one match, so instead ONE thread waits on ALL sockets at
once and wakes up when any of them has something to say:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         poll() iteration                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   selector.select(timeout)        ◄── the only place we block       │
    │        │                                                             │
    │        ├── listener readable?  ──► accept()  ──► NewConnection       │
    │        │                                                             │
    │        └── peer readable?      ──► recv()                            │
    │                 │                                                    │
    │                 ├── b"" (FIN)      ──► close ──► Disconnected        │
    │                 ├── OSError (RST)  ──► close ──► Disconnected        │
    │                 └── bytes          ──► frames ──► DataReceived × n   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

selectors.DefaultSelector picks the best mechanism for the platform
(epoll on Linux, kqueue on macOS/BSD, select elsewhere) and hands back only
the sockets that are actually ready, so there is no fd_set bookkeeping.

=============================================================================
ADDRESS RESOLUTION
=============================================================================

listen() resolves the bind address with a passive getaddrinfo():

    getaddrinfo(host, port, AF_UNSPEC, SOCK_STREAM, flags=AI_PASSIVE)

host=None means "all interfaces". Each result is tried in turn and the
first one that binds wins, so the same code serves IPv4 and IPv6.

    ResolveError  getaddrinfo() failed
    BindError     no resolved address could be bound
    ListenError   listen() failed on the bound socket

=============================================================================
"""

import socket
import logging
import selectors
from typing import Callable, List, Optional, Set, Tuple

from ..config import ServerConfig
from ..errors import (
    AcceptError,
    BindError,
    ListenError,
    ReceiveError,
    ResolveError,
    WaitError,
)
from ..game.packet import PACKET_SIZE, Packet
from ..events import ConnectionEvent, DataReceived, Disconnected, NewConnection
from .connection import Connection


logger = logging.getLogger(__name__)


class Transport:
    """
    Listener + tracked peer set + readiness notification.

    Usage:
        transport = Transport(config)
        transport.listen()
        while running:
            for event in transport.poll(timeout=1.0):
                session.dispatch(event)
        transport.close_all()
    """

    def __init__(
        self,
        config: ServerConfig,
        decode: Callable[[bytes], Packet] = Packet.decode,
        frame_size: int = PACKET_SIZE,
    ):
        self.config = config
        self._decode = decode
        self._frame_size = frame_size

        self._selector: Optional[selectors.BaseSelector] = None
        self._listener: Optional[socket.socket] = None
        self._connections: Set[Connection] = set()

        # Closed by server policy (rejected newcomer, failed send). The
        # session still has to hear about them, see take_dropped().
        self._dropped: List[Connection] = []

    @property
    def is_listening(self) -> bool:
        return self._listener is not None

    @property
    def address(self) -> Tuple:
        """The address the listener is actually bound to."""
        if self._listener is None:
            raise RuntimeError("Transport is not listening")
        return self._listener.getsockname()

    @property
    def connections(self) -> frozenset:
        return frozenset(self._connections)

    def is_tracked(self, conn: Connection) -> bool:
        return conn in self._connections

    # =========================================================================
    # LISTENING
    # =========================================================================

    def _resolve(self, host: Optional[str], port: int) -> list:
        try:
            return socket.getaddrinfo(
                host, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE
            )
        except socket.gaierror as e:
            raise ResolveError(f"Unable to resolve {host or '*'}:{port}: {e}") from e

    def _bind_first(self, infos: list) -> socket.socket:
        last_error: Optional[OSError] = None

        for family, socktype, proto, _, sockaddr in infos:
            try:
                sock = socket.socket(family, socktype, proto)
            except OSError as e:
                last_error = e
                continue

            # Restarting the server right after a match would otherwise hit
            # "Address already in use" while the old socket sits in TIME_WAIT.
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

            try:
                sock.bind(sockaddr)
            except OSError as e:
                last_error = e
                sock.close()
                continue

            return sock

        raise BindError(f"Unable to bind to any resolved address: {last_error}")

    def listen(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Resolve, bind and listen. Startup errors here are fatal to the server.

        Args:
            host: Override config.host.
            port: Override config.port.
        """
        host = host if host is not None else self.config.host
        port = port if port is not None else self.config.port

        infos = self._resolve(host, port)
        sock = self._bind_first(infos)

        try:
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise ListenError(f"Unable to listen on {host or '*'}:{port}: {e}") from e

        sock.setblocking(False)

        self._listener = sock
        self._selector = selectors.DefaultSelector()
        # data=None marks the listener; peers carry their Connection
        self._selector.register(sock, selectors.EVENT_READ, data=None)

        logger.info(f"Listening on {self._format_address(self.address)}")

    @staticmethod
    def _format_address(address: Tuple) -> str:
        return f"{address[0]}:{address[1]}"

    # =========================================================================
    # PRIMITIVES
    # =========================================================================

    def wait(self, timeout: Optional[float] = None) -> List[selectors.SelectorKey]:
        """
        Block until the listener or a peer is readable, or timeout expires.

        Returns:
            Keys of the ready sockets (empty on timeout).

        Raises:
            WaitError: The underlying select/epoll call failed.
        """
        if self._selector is None:
            raise WaitError("Transport is not listening")
        try:
            return [key for key, _ in self._selector.select(timeout)]
        except OSError as e:
            raise WaitError(f"Wait failed: {e}") from e

    def accept(self) -> Optional[Connection]:
        """
        Accept one pending connection and start tracking it.

        Returns:
            The new Connection, or None if the client gave up before we got
            to it.

        Raises:
            AcceptError: accept() failed.
        """
        try:
            client_socket, client_address = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return None
        except OSError as e:
            raise AcceptError(f"Unable to accept a new connection: {e}") from e

        # 16-byte packets: send them now, don't wait to coalesce
        try:
            client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass

        conn = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
            frame_size=self._frame_size,
        )
        self._connections.add(conn)
        self._selector.register(client_socket, selectors.EVENT_READ, data=conn)

        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}")
        return conn

    def receive(self, conn: Connection) -> Optional[List[bytes]]:
        """
        Read complete frames from a readable peer.

        Returns:
            List of frames, or None if the peer is gone. In that case the
            connection has already been closed and untracked.
        """
        try:
            frames = conn.read_frames()
        except ReceiveError as e:
            logger.warning(str(e))
            frames = None

        if frames is None:
            self.close(conn)
        return frames

    def send_raw(self, conn: Connection, data: bytes) -> int:
        return conn.send_raw(data)

    def close(self, conn: Connection):
        """Untrack and close a peer. Idempotent."""
        if conn not in self._connections:
            conn.close()
            return
        self._connections.discard(conn)
        try:
            self._selector.unregister(conn.socket)
        except (KeyError, ValueError):
            pass
        conn.close()

    def drop(self, conn: Connection):
        """
        Close a peer on the server's initiative.

        The peer is recorded for take_dropped(); the caller decides whether
        the session hears about it.
        """
        if conn not in self._connections:
            return
        logger.debug(f"[{conn.id}] Dropping connection from {conn.client_ip}")
        self.close(conn)
        self._dropped.append(conn)

    def take_dropped(self) -> List[Disconnected]:
        """Disconnected events for everything dropped since the last call."""
        dropped, self._dropped = self._dropped, []
        return [Disconnected(conn) for conn in dropped]

    # =========================================================================
    # EVENT NORMALIZATION
    # =========================================================================

    def poll(self, timeout: Optional[float] = None) -> List[ConnectionEvent]:
        """
        Wait once and turn whatever became ready into connection events.

        Per-connection errors never escape: the connection is closed and
        reported as Disconnected. Only WaitError propagates.
        """
        events: List[ConnectionEvent] = []

        for key in self.wait(timeout):
            if key.data is None:
                try:
                    conn = self.accept()
                except AcceptError as e:
                    logger.error(str(e))
                    continue
                if conn is not None:
                    events.append(NewConnection(conn))
                continue

            conn: Connection = key.data
            if conn not in self._connections:
                continue

            frames = self.receive(conn)
            if frames is None:
                logger.debug(f"[{conn.id}] Peer disconnected")
                events.append(Disconnected(conn))
                continue

            for frame in frames:
                events.append(DataReceived(conn, self._decode(frame)))

        return events

    def close_all(self):
        """Close every peer and the listener."""
        for conn in list(self._connections):
            self.close(conn)
        self._dropped.clear()

        if self._selector is not None:
            self._selector.close()
            self._selector = None

        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass
            self._listener = None
