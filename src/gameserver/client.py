"""
=============================================================================
TERMINAL CLIENT
=============================================================================

A minimal interactive client for the game server:

    python -m gameserver.client --host localhost --port 9034

It keeps its own copy of the board, built purely from what the server
announces, and asks for "row col" when it is its turn:

    Server says                      Client does
    ───────────────────────────────  ───────────────────────────────────────
    {WAITING}                        clear board, "Waiting for a second player"
    {PLAYING, YOU, r, c}             mark opponent at (r, c), render, prompt
    {PLAYING, OPPONENT, r, c}        mark own move at (r, c), render, wait
    {FINISHED, WON/LOST/DRAW, r, c}  mark final move, render, print result

The very first announcement of a match carries -1/-1; whoever is told
"your move" then plays X, the other plays O.

Moves are checked locally (on the board, cell empty) before they are sent,
so the server's silent-ignore policy never leaves this client hanging.

=============================================================================
"""

import argparse
import logging
import socket
import sys
from typing import Callable, Optional, Tuple

from . import __version__
from .config import DEFAULT_PORT
from .errors import ConnectError, ReceiveError, ResolveError, SendError, TransportError
from .core.reliable import send_packet
from .game.board import Board, Mark, in_bounds
from .game.packet import PACKET_SIZE, Packet, Phase, Result, Turn


logger = logging.getLogger(__name__)


RESULT_MESSAGES = {
    Result.WON: "Congratulations, you won!",
    Result.LOST: "Bummer, you lost :(",
    Result.DRAW: "Whoa, it's a draw :O",
}


def connect(host: str, port: int, timeout: Optional[float] = None) -> socket.socket:
    """
    Connect to the first reachable address of host:port.

    Raises:
        ResolveError: host could not be resolved.
        ConnectError: No resolved address accepted the connection.
    """
    try:
        infos = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ResolveError(f"Unable to resolve {host}:{port}: {e}") from e

    last_error: Optional[OSError] = None
    for family, socktype, proto, _, sockaddr in infos:
        sock = socket.socket(family, socktype, proto)
        sock.settimeout(timeout)
        try:
            sock.connect(sockaddr)
        except OSError as e:
            last_error = e
            sock.close()
            continue
        return sock

    raise ConnectError(f"Unable to connect to {host}:{port}: {last_error}")


class GameClient:
    """
    Plays one seat against the server over an already connected socket.

    Args:
        sock: Connected stream socket.
        read_line: Where moves come from (input() by default).
        write: Where text goes (print() by default).
        send_attempts: Reliable Send budget per move.
    """

    def __init__(
        self,
        sock: socket.socket,
        read_line: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
        send_attempts: int = 10,
    ):
        self._sock = sock
        self._read_line = read_line
        self._write = write
        self.send_attempts = send_attempts

        self.board = Board()
        self.mark: Optional[Mark] = None
        self.my_turn = False
        self.last_result: Optional[Result] = None

    # =========================================================================
    # WIRE
    # =========================================================================

    def send_raw(self, data: bytes) -> int:
        try:
            return self._sock.send(data)
        except OSError as e:
            raise SendError(f"send failed: {e}") from e

    def receive(self) -> Optional[Packet]:
        """Block for the next packet. None once the server has closed."""
        data = b""
        while len(data) < PACKET_SIZE:
            try:
                chunk = self._sock.recv(PACKET_SIZE - len(data))
            except (ConnectionResetError, BrokenPipeError):
                return None
            except OSError as e:
                raise ReceiveError(f"recv failed: {e}") from e
            if not chunk:
                return None
            data += chunk
        return Packet.decode(data)

    def send_move(self, row: int, col: int):
        send_packet(self, Packet.move(row, col), self.send_attempts)

    # =========================================================================
    # GAME
    # =========================================================================

    @property
    def opponent_mark(self) -> Mark:
        return (self.mark or Mark.X).opponent

    def _mark_cell(self, packet: Packet, mark: Mark):
        if packet.has_cell and self.board.is_empty(packet.row, packet.col):
            self.board.place(packet.row, packet.col, mark)

    def handle(self, packet: Packet):
        """React to one server packet (may prompt for and send a move)."""
        logger.debug(f"<- {packet}")

        if packet.phase == Phase.WAITING:
            self.board.clear()
            self.mark = None
            self.my_turn = False
            self._write("Waiting for a second player to connect.")

        elif packet.phase == Phase.PLAYING:
            if not packet.has_cell:
                # Opening announcement decides who is X
                self.board.clear()
                self.mark = Mark.X if packet.turn == Turn.YOU else Mark.O

            if packet.turn == Turn.YOU:
                self._mark_cell(packet, self.opponent_mark)
                self.my_turn = True
                self._write(self.board.render())
                self._write("Your move.")
                row, col = self.prompt_move()
                self.send_move(row, col)
            else:
                self._mark_cell(packet, self.mark or Mark.X)
                self.my_turn = False
                self._write(self.board.render())
                self._write("Wait for your turn.")

        elif packet.phase == Phase.FINISHED:
            # Whoever was on turn made the final move
            mover = (self.mark or Mark.X) if self.my_turn else self.opponent_mark
            self._mark_cell(packet, mover)
            self._write(self.board.render())
            self._write("Match concluded.")
            try:
                self.last_result = Result(packet.turn)
                self._write(RESULT_MESSAGES[self.last_result])
            except ValueError:
                logger.warning(f"Unknown result code {packet.turn}")
            self.board.clear()
            self.my_turn = False

        else:
            logger.warning(f"Ignoring packet with unknown phase {packet.phase}")

    def prompt_move(self) -> Tuple[int, int]:
        """Ask until the user enters a free cell as "row col"."""
        while True:
            text = self._read_line("Enter the row and then the column you'd like to play: ")
            parts = text.replace(",", " ").split()
            try:
                row, col = (int(p) for p in parts)
            except ValueError:
                self._write("Please enter two numbers, e.g. 1 2")
                continue
            if in_bounds(row, col) and self.board.is_empty(row, col):
                return row, col
            self._write("Please enter valid coordinates!")

    def run(self):
        """Play until the server closes the connection or input runs out."""
        try:
            while True:
                packet = self.receive()
                if packet is None:
                    self._write("Server closed the connection.")
                    return
                self.handle(packet)
        except EOFError:
            self._write("Bye.")
        finally:
            self._sock.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="gameserver-client",
        description="Terminal client for the tic-tac-toe game server",
    )
    parser.add_argument("--host", "-H", default="localhost", help="Server host (default: localhost)")
    parser.add_argument("--port", "-p", type=int, default=DEFAULT_PORT,
                        help=f"Server port (default: {DEFAULT_PORT})")
    parser.add_argument("--log-level", "-l", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument("--version", "-v", action="version", version=f"gameserver {__version__}")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        sock = connect(args.host, args.port)
    except ResolveError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except ConnectError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 3

    try:
        GameClient(sock).run()
    except TransportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
