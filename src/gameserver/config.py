"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the game server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m gameserver --port 9100                          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── GAME_PORT=9100 python -m gameserver                       │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional

from .game.packet import PACKET_SIZE


DEFAULT_PORT = 9034


@dataclass
class ServerConfig:
    """
    Configuration for the game server.

    NETWORK
    - host, port, backlog, buffer_size

    GAME
    - send_attempts, reset_delay, max_queued

    LOOP / LOGGING
    - poll_interval, log_level
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: Optional[str] = None
    """
    Address to bind to.
    - None - all interfaces (passive resolution, IPv4 and IPv6)
    - "127.0.0.1" - localhost only
    """

    port: int = DEFAULT_PORT
    """Port to listen on. 0 lets the OS pick one (tests)."""

    backlog: int = 20
    """Connections the OS queues before we accept() them."""

    buffer_size: int = 256
    """Bytes read per recv(). Must hold at least one packet."""

    # ─────────────────────────────────────────────────────────────────────
    # GAME SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    send_attempts: int = 10
    """Write attempts per packet before giving up on a peer."""

    reset_delay: float = 3.0
    """
    Seconds the finished board stays up before the session resets.
    The loop keeps serving other sockets during this pause.
    """

    max_queued: int = 4
    """
    Connections allowed to wait for a seat while a match is running.
    0 rejects (closes) every connection beyond the two players.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOOP / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    poll_interval: float = 1.0
    """Longest the loop blocks before checking for shutdown."""

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        GAME_HOST           Bind address (default: all interfaces)
        GAME_PORT           Port (default: 9034)
        GAME_SEND_ATTEMPTS  Write attempts per packet (default: 10)
        GAME_RESET_DELAY    Seconds between matches (default: 3)
        GAME_MAX_QUEUED     Waiting line length (default: 4)
        GAME_LOG_LEVEL      Logging level (default: INFO)
        """
        return cls(
            host=os.getenv("GAME_HOST") or None,
            port=int(os.getenv("GAME_PORT", str(DEFAULT_PORT))),
            send_attempts=int(os.getenv("GAME_SEND_ATTEMPTS", "10")),
            reset_delay=float(os.getenv("GAME_RESET_DELAY", "3")),
            max_queued=int(os.getenv("GAME_MAX_QUEUED", "4")),
            log_level=os.getenv("GAME_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """Fail fast on nonsense values, before any socket is created."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < PACKET_SIZE:
            raise ValueError(f"buffer_size must be >= {PACKET_SIZE}")

        if self.send_attempts < 1:
            raise ValueError("send_attempts must be >= 1")

        if self.reset_delay < 0:
            raise ValueError("reset_delay must be >= 0")

        if self.max_queued < 0:
            raise ValueError("max_queued must be >= 0")

        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
