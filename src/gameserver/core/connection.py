"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one connected peer socket. The Connection object is the
"handle" the rest of the server passes around: the transport reads from
it, the session stores it in a player slot, and Reliable Send writes to it.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

Our packets are a fixed 16 bytes, but TCP does not preserve message
boundaries. One recv() can return:

    recv() → 16 bytes            (one packet, the common case)
    recv() → 7 bytes             (first part of a packet)
    recv() → 9 bytes             (...and the rest of it)
    recv() → 32 bytes            (two packets back to back)

So every Connection keeps a small buffer. read_frames() appends whatever
arrived and cuts off as many complete frames as it can, leaving any
partial frame for the next wakeup.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    OPEN ──────────► CLOSED
      │                 ▲
      │  orderly close  │
      │  (recv == b"")  │
      │  recv error     │
      │  server policy  │
      └─────────────────┘

close() is idempotent, so whoever notices the problem first can call it
and the socket is still released exactly once.

=============================================================================
"""

import socket
import time
import logging
import uuid
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import ReceiveError, SendError


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """
    A connected peer.

    eq=False keeps identity hashing, so a Connection can live in sets,
    dict keys and player slots.

    Attributes:
        socket: The peer socket (non-blocking; the selector tells us when
                it is readable).
        address: Peer address as returned by accept().
        id: Short identifier for log lines.
        frame_size: Size of one fixed-size packet.
    """

    socket: socket.socket
    address: Tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.OPEN
    last_activity: float = field(default_factory=time.time)
    frames_received: int = 0

    buffer_size: int = 256
    frame_size: int = 16

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(False)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else "?"

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    @property
    def pending_bytes(self) -> int:
        """Bytes of a partial frame waiting for the rest to arrive."""
        return len(self._buffer)

    def fileno(self) -> int:
        return self.socket.fileno()

    # =========================================================================
    # READING
    # =========================================================================

    def read_frames(self) -> Optional[List[bytes]]:
        """
        Read what the socket has and return every complete frame.

        Call this only when the selector reported the socket readable.

        Returns:
            A (possibly empty) list of frame_size byte strings, or None if
            the peer closed the connection in an orderly way.

        Raises:
            ReceiveError: recv() failed (connection reset and friends).
        """
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (BlockingIOError, InterruptedError):
            # Spurious wakeup, nothing to read after all
            return []
        except OSError as e:
            raise ReceiveError(f"[{self.id}] recv failed: {e}") from e

        if not chunk:
            return None

        self.last_activity = time.time()
        self._buffer += chunk

        frames = []
        while len(self._buffer) >= self.frame_size:
            frames.append(self._buffer[:self.frame_size])
            self._buffer = self._buffer[self.frame_size:]

        self.frames_received += len(frames)
        return frames

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_raw(self, data: bytes) -> int:
        """
        Write as much of data as the socket takes right now.

        Unlike sendall(), this may write only part of the data (or none of
        it if the send buffer is full). Reliable Send deals with that.

        Returns:
            Number of bytes written.

        Raises:
            SendError: The connection is closed or the write failed hard.
        """
        if not self.is_open:
            raise SendError(f"[{self.id}] send on closed connection")
        try:
            written = self.socket.send(data)
        except (BlockingIOError, InterruptedError):
            return 0
        except OSError as e:
            raise SendError(f"[{self.id}] send failed: {e}") from e
        self.last_activity = time.time()
        return written

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """Shut down and release the socket. Safe to call repeatedly."""
        if self.state is ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSED

        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self._buffer = b""
        logger.debug(f"[{self.id}] Connection closed after {self.frames_received} packets")
