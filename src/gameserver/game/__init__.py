"""
=============================================================================
GAME MODEL
=============================================================================

Everything that knows about tic-tac-toe and nothing about sockets:

    packet.py    The 16-byte move/state packet and its codes
    board.py     3x3 grid, win/draw evaluation
    session.py   The match state machine (seats, turns, phases)

The session talks to the outside world only through an Outbox
(send/drop), which is what makes it testable without a network.

=============================================================================
"""

from .packet import PACKET_SIZE, NO_CELL, Packet, Phase, Result, Turn
from .board import Board, Mark, Outcome, OutcomeKind, evaluate
from .session import Outbox, Session

__all__ = [
    "PACKET_SIZE",
    "NO_CELL",
    "Packet",
    "Phase",
    "Result",
    "Turn",
    "Board",
    "Mark",
    "Outcome",
    "OutcomeKind",
    "evaluate",
    "Outbox",
    "Session",
]
