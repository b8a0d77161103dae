"""
=============================================================================
SESSION STATE MACHINE
=============================================================================

The one and only match. The server creates a single Session at startup
and feeds it every connection event; the Session answers by sending
packets through its outbox. It is never destroyed, only reset in place.

=============================================================================
PHASES
=============================================================================

                 second player seated
    ┌─────────┐ ──────────────────────► ┌─────────┐
    │ WAITING │                         │ PLAYING │
    └─────────┘ ◄────────────────────── └─────────┘
         ▲          a player left            │
         │                                   │ win / draw
         │            reset()                ▼
         └─────────────────────────────  ┌──────────┐
                                         │ FINISHED │
                                         └──────────┘

    WAITING    0 or 1 slots filled
    PLAYING    both slots filled, player_one (X) moved first
    FINISHED   terminal packets sent, board frozen until reset()

=============================================================================
WHO GETS WHAT
=============================================================================

    Event                       player_one               player_two
    ──────────────────────────  ───────────────────────  ─────────────────────
    first connection            {WAITING, 0, -1, -1}
    second connection           {PLAYING, YOU, -1, -1}   {PLAYING, OPPONENT, -1, -1}
    one moves to (r, c)         {PLAYING, OPPONENT, r, c} {PLAYING, YOU, r, c}
    one wins at (r, c)          {FINISHED, WON, r, c}    {FINISHED, LOST, r, c}
    draw at (r, c)              {FINISHED, DRAW, r, c}   {FINISHED, DRAW, r, c}
    two leaves mid-match        {WAITING, 0, -1, -1}

Bad moves (wrong phase, not a player, out of turn, off the board, taken
cell) raise ProtocolViolation internally. dispatch() swallows them: the
sender simply gets no answer.

=============================================================================
THE WAITING LINE
=============================================================================

Connections that arrive while both seats are taken join `queue` (up to
max_queued; beyond that they are dropped). When a seat frees up, the
front of the line is seated. After a match the previous player_one goes
to the back of the line and player_two takes seat one, so two players who
stay connected get a rematch with the other one moving first.

=============================================================================
"""

import logging
from collections import deque
from typing import Any, Deque, Optional, Protocol

from ..errors import ProtocolViolation, SessionInvariantError, UnknownPeerDisconnect
from ..events import ConnectionEvent, DataReceived, Disconnected, NewConnection
from .board import Board, Mark, OutcomeKind, in_bounds
from .packet import Packet, Phase, Result, Turn


logger = logging.getLogger(__name__)


class Outbox(Protocol):
    """Where the session's replies go. The server implements this."""

    def send(self, handle: Any, packet: Packet) -> None:
        ...

    def drop(self, handle: Any) -> None:
        ...


def _name(handle: Any) -> str:
    return getattr(handle, "id", None) or repr(handle)


class Session:
    """
    Two seats, a board and whose turn it is.

    Args:
        outbox: Receives every outbound packet and rejection.
        max_queued: Length of the waiting line. 0 rejects every connection
                    that arrives while both seats are taken.
    """

    def __init__(self, outbox: Outbox, max_queued: int = 0):
        self._outbox = outbox
        self.max_queued = max_queued

        self.phase = Phase.WAITING
        self.player_one: Optional[Any] = None
        self.player_two: Optional[Any] = None
        self.board = Board()
        self.queue: Deque[Any] = deque()

        # Handle expected to move next; only set while PLAYING
        self._turn: Optional[Any] = None

        self.matches_played = 0

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    @property
    def players(self) -> tuple:
        return tuple(p for p in (self.player_one, self.player_two) if p is not None)

    @property
    def turn(self) -> Optional[Any]:
        return self._turn

    def is_player(self, handle: Any) -> bool:
        return handle is not None and (handle is self.player_one or handle is self.player_two)

    def knows(self, handle: Any) -> bool:
        return self.is_player(handle) or handle in self.queue

    def mark_of(self, handle: Any) -> Mark:
        if handle is self.player_one:
            return Mark.X
        if handle is self.player_two:
            return Mark.O
        raise ProtocolViolation(f"{_name(handle)} is not seated")

    def opponent_of(self, handle: Any) -> Optional[Any]:
        if handle is self.player_one:
            return self.player_two
        if handle is self.player_two:
            return self.player_one
        return None

    # =========================================================================
    # EVENT ENTRY POINT
    # =========================================================================

    def dispatch(self, event: ConnectionEvent) -> None:
        """
        Apply one connection event.

        ProtocolViolation is handled here (ignored). SessionInvariantError
        propagates so the loop can log it.
        """
        if isinstance(event, NewConnection):
            self.connect(event.handle)
        elif isinstance(event, DataReceived):
            try:
                self.move(event.handle, event.packet.row, event.packet.col)
            except ProtocolViolation as e:
                logger.debug(f"Ignored move from {_name(event.handle)}: {e}")
        elif isinstance(event, Disconnected):
            self.disconnect(event.handle)
        else:
            logger.debug(f"Ignored unknown event {event!r}")

    # =========================================================================
    # CONNECT
    # =========================================================================

    def connect(self, handle: Any) -> None:
        if self.knows(handle):
            raise SessionInvariantError(f"{_name(handle)} connected twice")

        if self.phase is Phase.WAITING and self.player_two is None:
            self._seat(handle)
            return

        # Both seats taken (or a finished board still on display)
        if len(self.queue) < self.max_queued:
            self.queue.append(handle)
            self._send(handle, Packet.waiting())
            logger.info(f"{_name(handle)} queued ({len(self.queue)} waiting)")
        else:
            logger.info(f"{_name(handle)} rejected: session is full")
            self._outbox.drop(handle)

    def _seat(self, handle: Any) -> None:
        if self.player_one is None:
            self.player_one = handle
            self._send(handle, Packet.waiting())
            logger.info(f"{_name(handle)} took seat one, waiting for an opponent")
        else:
            self.player_two = handle
            logger.info(f"{_name(handle)} took seat two")
            self._start_match()

    def _start_match(self) -> None:
        self.board.clear()
        self.phase = Phase.PLAYING
        self._turn = self.player_one

        self._send(self.player_one, Packet.playing(Turn.YOU))
        self._send(self.player_two, Packet.playing(Turn.OPPONENT))
        logger.info(
            f"Match started: {_name(self.player_one)} (X) vs {_name(self.player_two)} (O)"
        )

    def _promote(self) -> None:
        """Fill free seats from the front of the waiting line."""
        while self.phase is Phase.WAITING and self.queue and self.player_two is None:
            self._seat(self.queue.popleft())

    # =========================================================================
    # MOVE
    # =========================================================================

    def move(self, handle: Any, row: int, col: int) -> None:
        """
        Play (row, col) for handle.

        Raises:
            ProtocolViolation: The move is not acceptable right now. Nothing
                               changed and nothing was sent.
        """
        if self.phase is not Phase.PLAYING:
            raise ProtocolViolation(f"no match in progress (phase {self.phase.name})")
        if not self.is_player(handle):
            raise ProtocolViolation("not a player in this match")
        if handle is not self._turn:
            raise ProtocolViolation("not this player's turn")
        if not in_bounds(row, col):
            raise ProtocolViolation(f"cell ({row}, {col}) is off the board")
        if not self.board.is_empty(row, col):
            raise ProtocolViolation(f"cell ({row}, {col}) is already taken")

        mark = self.mark_of(handle)
        opponent = self.opponent_of(handle)
        self.board.place(row, col, mark)
        logger.debug(f"{_name(handle)} ({mark.symbol}) played ({row}, {col})")

        outcome = self.board.evaluate()

        if outcome.kind is OutcomeKind.WIN:
            self._send(handle, Packet.finished(Result.WON, row, col))
            self._send(opponent, Packet.finished(Result.LOST, row, col))
            self._finish(f"{_name(handle)} ({mark.symbol}) won")
        elif outcome.kind is OutcomeKind.DRAW:
            self._send(handle, Packet.finished(Result.DRAW, row, col))
            self._send(opponent, Packet.finished(Result.DRAW, row, col))
            self._finish("draw")
        else:
            self._turn = opponent
            self._send(handle, Packet.playing(Turn.OPPONENT, row, col))
            self._send(opponent, Packet.playing(Turn.YOU, row, col))

    def _finish(self, summary: str) -> None:
        self.phase = Phase.FINISHED
        self._turn = None
        self.matches_played += 1
        logger.info(f"Match {self.matches_played} over: {summary}")

    # =========================================================================
    # DISCONNECT
    # =========================================================================

    def disconnect(self, handle: Any) -> None:
        """
        Forget a closed connection.

        Raises:
            UnknownPeerDisconnect: handle was neither seated nor queued.
        """
        if handle in self.queue:
            self.queue.remove(handle)
            logger.info(f"{_name(handle)} left the waiting line")
            return

        if not self.is_player(handle):
            raise UnknownPeerDisconnect(f"disconnect from unknown peer {_name(handle)}")

        if self.phase is Phase.PLAYING:
            remaining = self.opponent_of(handle)
            self.player_one = remaining
            self.player_two = None
            self.board.clear()
            self.phase = Phase.WAITING
            self._turn = None
            logger.info(f"{_name(handle)} left mid-match, {_name(remaining)} is waiting again")
            self._send(remaining, Packet.waiting())
            self._promote()

        elif self.phase is Phase.WAITING:
            self.player_one = None
            logger.info(f"{_name(handle)} left, session is empty")
            self._promote()

        else:
            # FINISHED: keep the board up, reset() sorts out the seats
            if handle is self.player_one:
                self.player_one = None
            else:
                self.player_two = None
            logger.info(f"{_name(handle)} left after the match")

    # =========================================================================
    # RESET
    # =========================================================================

    def reset(self) -> None:
        """
        Reopen the session after a finished match.

        Seat one goes to the previous player_two, the previous player_one
        goes to the back of the waiting line, and free seats are filled
        from the line.

        Raises:
            SessionInvariantError: The session is not FINISHED. Nothing
                                   changed and nothing was sent.
        """
        if self.phase is not Phase.FINISHED:
            raise SessionInvariantError(f"reset requested in phase {self.phase.name}")

        previous_one, previous_two = self.player_one, self.player_two

        self.board.clear()
        self.phase = Phase.WAITING
        self._turn = None
        self.player_one = previous_two
        self.player_two = None

        logger.info("Session reset")

        if self.player_one is not None:
            self._send(self.player_one, Packet.waiting())

        if previous_one is not None:
            self.queue.append(previous_one)

        self._promote()

        if previous_one in self.queue:
            self._send(previous_one, Packet.waiting())

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def _send(self, handle: Any, packet: Packet) -> None:
        if handle is not None:
            self._outbox.send(handle, packet)
