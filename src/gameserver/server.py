"""
=============================================================================
GAME SERVER - THE EVENT LOOP
=============================================================================

Glues the transport and the session together with one single-threaded
loop. There is no thread pool and no locking: the Session is only ever
touched by this loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                       GameServer.run()                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   transport.listen()              fatal on Resolve/Bind/ListenError │
    │        │                                                             │
    │        ▼                                                             │
    │   while running:                                                     │
    │        │                                                             │
    │        ├──► transport.poll(timeout)    ◄── the only blocking call   │
    │        │                                                             │
    │        ├──► for each event:                                          │
    │        │        session.dispatch(event)                              │
    │        │           └──► self.send() / self.drop()  (the Outbox)     │
    │        │        feed dropped connections back as Disconnected        │
    │        │        arm the reset timer if the match just ended          │
    │        │                                                             │
    │        └──► reset timer due?  ──► session.reset()                   │
    │                                                                      │
    │   transport.close_all()                                              │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACING BETWEEN MATCHES WITHOUT BLOCKING
=============================================================================

A finished board stays on screen for `reset_delay` seconds. Sleeping for
that long would freeze every socket, so instead the loop remembers a
deadline and shortens its poll timeout:

    timeout = min(poll_interval, reset_at - now)

Clients keep being accepted and read while the timer runs.

=============================================================================
"""

import signal
import logging
import threading
import time
from typing import Optional, Tuple

from .config import ServerConfig
from .errors import SendError, SendTimeout, SessionInvariantError, TransportError, WaitError
from .events import ConnectionEvent, Disconnected
from .game.packet import Packet, Phase
from .game.session import Session
from .core.connection import Connection
from .core.reliable import send_packet
from .core.transport import Transport


logger = logging.getLogger(__name__)

# Consecutive failed waits before the loop gives up
MAX_WAIT_FAILURES = 5


class GameServer:
    """
    Single-session tic-tac-toe server.

    Usage:
        server = GameServer(ServerConfig(port=9034))
        server.run()  # Blocks until shutdown() or Ctrl+C

    The server is also the session's Outbox: Session calls send() and
    drop() on it.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._transport = Transport(self.config)
        self.session = Session(self, max_queued=self.config.max_queued)

        self._running = False
        self._reset_at: Optional[float] = None
        self._wait_failures = 0

        # Set once the listener is up; tests wait on it
        self._listening = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple:
        """Bound (host, port, ...) of the listener."""
        return self._transport.address

    @property
    def transport(self) -> Transport:
        return self._transport

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._listening.wait(timeout)

    # =========================================================================
    # OUTBOX (called by Session)
    # =========================================================================

    def send(self, handle: Connection, packet: Packet) -> None:
        """
        Send one packet, dropping the peer if it can't be delivered.

        A failed send never raises into the session; the peer is closed and
        its Disconnected event is fed in after the current event.
        """
        if not self._transport.is_tracked(handle):
            return
        try:
            send_packet(handle, packet, self.config.send_attempts)
            logger.debug(f"[{handle.id}] -> {packet}")
        except (SendError, SendTimeout) as e:
            logger.warning(f"[{handle.id}] Dropping connection, send failed: {e}")
            self._transport.drop(handle)

    def drop(self, handle: Connection) -> None:
        self._transport.drop(handle)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start the server (blocking).

        Raises:
            ResolveError, BindError, ListenError: Startup failed. Nothing
            is left open.
        """
        self._setup_logging()

        try:
            self._transport.listen(host, port)
        except TransportError as e:
            logger.error(str(e))
            raise

        self._running = True
        self._setup_signals()
        self._listening.set()

        logger.info(
            f"Game server ready (reset delay {self.config.reset_delay}s, "
            f"queue {self.config.max_queued})"
        )

        try:
            self._loop()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._cleanup()

    def shutdown(self):
        """Ask the loop to stop. Safe from signal handlers and other threads."""
        logger.info("Shutting down game server...")
        self._running = False

    def _loop(self):
        while self._running:
            try:
                events = self._transport.poll(self._next_timeout())
            except WaitError as e:
                self._wait_failures += 1
                logger.error(f"{e} ({self._wait_failures}/{MAX_WAIT_FAILURES})")
                if self._wait_failures >= MAX_WAIT_FAILURES:
                    logger.critical("Selector keeps failing, giving up")
                    self.shutdown()
                else:
                    time.sleep(self.config.poll_interval)
                continue

            self._wait_failures = 0

            for event in events:
                self._handle(event)

            self._check_reset()

    def _next_timeout(self) -> float:
        timeout = self.config.poll_interval
        if self._reset_at is not None:
            timeout = min(timeout, max(0.0, self._reset_at - time.monotonic()))
        return timeout

    # =========================================================================
    # EVENT HANDLING
    # =========================================================================

    def _handle(self, event: ConnectionEvent):
        # A connection dropped earlier in this batch gets no further events
        if not isinstance(event, Disconnected) and not self._transport.is_tracked(event.handle):
            return

        self._dispatch(event)
        self._flush_dropped()

    def _dispatch(self, event: ConnectionEvent):
        try:
            self.session.dispatch(event)
        except SessionInvariantError as e:
            logger.warning(f"Session invariant: {e}")
        self._arm_reset()

    def _flush_dropped(self):
        """Tell the session about connections the server closed itself."""
        pending = self._transport.take_dropped()
        while pending:
            for event in pending:
                # Rejected newcomers were never seated or queued
                if self.session.knows(event.handle):
                    self._dispatch(event)
            pending = self._transport.take_dropped()

    # =========================================================================
    # DEFERRED RESET
    # =========================================================================

    def _arm_reset(self):
        if self.session.phase is Phase.FINISHED:
            if self._reset_at is None:
                self._reset_at = time.monotonic() + self.config.reset_delay
                logger.debug(f"Reset scheduled in {self.config.reset_delay}s")
        else:
            self._reset_at = None

    def _check_reset(self):
        if self._reset_at is None or time.monotonic() < self._reset_at:
            return

        self._reset_at = None
        try:
            self.session.reset()
        except SessionInvariantError as e:
            logger.warning(f"Session invariant: {e}")
        self._flush_dropped()
        self._arm_reset()

    # =========================================================================
    # SETUP / TEARDOWN
    # =========================================================================

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("gameserver").setLevel(level)

    def _setup_signals(self):
        """
        Install SIGTERM/SIGINT handlers for graceful shutdown.

        Python only allows this on the main thread; when the server runs in
        a background thread (tests) shutdown() is called directly instead.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _cleanup(self):
        self._running = False
        self._restore_signals()
        self._transport.close_all()
        self._listening.clear()
        logger.info("Game server stopped")
