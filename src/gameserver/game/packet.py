"""
=============================================================================
MOVE/STATE PACKET CODEC
=============================================================================

There is exactly one message on the wire. It is used in both directions:

    ┌──────────────┬──────────────┬──────────────┬──────────────┐
    │ phase (int32)│ turn (int32) │ row (int32)  │ col (int32)  │
    └──────────────┴──────────────┴──────────────┴──────────────┘
      4 bytes        4 bytes        4 bytes        4 bytes      = 16 bytes

    Native byte order, standard sizes (struct format "=4i").

Because every packet is exactly PACKET_SIZE bytes, no length prefix or
delimiter is needed. The receiver just accumulates bytes and cuts them
into 16-byte frames.

=============================================================================
FIELD MEANINGS
=============================================================================

    phase   0 = WAITING    1 = PLAYING    2 = FINISHED

    turn    PLAYING:   0 = your move        1 = opponent's move
            FINISHED:  0 = you won          1 = you lost        2 = draw

    row/col The cell just played (or to announce). -1/-1 means "no cell",
            e.g. the very first turn announcement of a match.

Client -> server packets only carry row/col. The server ignores the other
two fields and always owns the authoritative phase/turn values.

=============================================================================
"""

import struct
from dataclasses import dataclass
from enum import IntEnum


PACKET_FORMAT = "=4i"
PACKET_SIZE = struct.calcsize(PACKET_FORMAT)

NO_CELL = -1


class Phase(IntEnum):
    """Top-level session phase, as sent on the wire."""
    WAITING = 0
    PLAYING = 1
    FINISHED = 2


class Turn(IntEnum):
    """Turn code while the match is in PLAYING phase."""
    YOU = 0
    OPPONENT = 1


class Result(IntEnum):
    """Turn code once the match is FINISHED."""
    WON = 0
    LOST = 1
    DRAW = 2


@dataclass(frozen=True)
class Packet:
    """
    One move/state packet.

    Fields are plain ints on decode so that a client sending garbage in the
    phase/turn fields can't break decoding; compare against the enums above.
    """
    phase: int = Phase.WAITING
    turn: int = 0
    row: int = NO_CELL
    col: int = NO_CELL

    @property
    def has_cell(self) -> bool:
        """True unless this packet carries the -1/-1 sentinel."""
        return self.row != NO_CELL and self.col != NO_CELL

    def encode(self) -> bytes:
        """Serialize to exactly PACKET_SIZE bytes."""
        return struct.pack(
            PACKET_FORMAT,
            int(self.phase), int(self.turn), int(self.row), int(self.col),
        )

    @classmethod
    def decode(cls, data: bytes) -> "Packet":
        """
        Deserialize one packet.

        Raises:
            ValueError: If data is not exactly PACKET_SIZE bytes.
        """
        if len(data) != PACKET_SIZE:
            raise ValueError(f"Packet must be {PACKET_SIZE} bytes, got {len(data)}")
        phase, turn, row, col = struct.unpack(PACKET_FORMAT, data)
        return cls(phase=phase, turn=turn, row=row, col=col)

    # ─────────────────────────────────────────────────────────────────────
    # CONSTRUCTORS for the server's outbound messages
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def waiting(cls) -> "Packet":
        return cls(Phase.WAITING, 0, NO_CELL, NO_CELL)

    @classmethod
    def playing(cls, turn: Turn, row: int = NO_CELL, col: int = NO_CELL) -> "Packet":
        return cls(Phase.PLAYING, turn, row, col)

    @classmethod
    def finished(cls, result: Result, row: int = NO_CELL, col: int = NO_CELL) -> "Packet":
        return cls(Phase.FINISHED, result, row, col)

    @classmethod
    def move(cls, row: int, col: int) -> "Packet":
        """What a client sends: only the coordinates matter."""
        return cls(Phase.PLAYING, 0, row, col)
