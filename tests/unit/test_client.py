"""
Unit tests for the terminal client, driven over a socketpair.
"""

import errno
import socket

import pytest

from conftest import recv_packet
from gameserver.client import RESULT_MESSAGES, GameClient, connect, main
from gameserver.errors import ConnectError, ReceiveError, ResolveError
from gameserver.game.board import Mark
from gameserver.game.packet import Packet, Result, Turn


class FakeTerminal:
    """Scripted input lines and captured output."""

    def __init__(self, lines=()):
        self.lines = list(lines)
        self.output = []

    def read_line(self, prompt: str) -> str:
        if not self.lines:
            raise EOFError
        return self.lines.pop(0)

    def write(self, text: str):
        self.output.append(text)

    @property
    def text(self) -> str:
        return "\n".join(self.output)


class TimedOutSocket:
    """Socket stand-in whose recv() fails with ETIMEDOUT."""

    def recv(self, size):
        raise TimeoutError(errno.ETIMEDOUT, "Connection timed out")

    def close(self):
        pass


@pytest.fixture
def wire():
    """(client_side, server_side) connected sockets."""
    client_side, server_side = socket.socketpair()
    server_side.settimeout(5.0)
    yield client_side, server_side
    client_side.close()
    server_side.close()


def make_client(sock, lines=()):
    term = FakeTerminal(lines)
    return GameClient(sock, read_line=term.read_line, write=term.write), term


class TestHandle:
    """Tests for reacting to server packets."""

    def test_waiting(self, wire):
        client, term = make_client(wire[0])
        client.handle(Packet.waiting())
        assert "Waiting for a second player" in term.text

    def test_opening_your_move_plays_x(self, wire):
        """Test the first mover is X and its move goes on the wire."""
        client_side, server_side = wire
        client, term = make_client(client_side, ["1 1"])

        client.handle(Packet.playing(Turn.YOU))

        assert client.mark is Mark.X
        assert "Your move." in term.text
        move = recv_packet(server_side)
        assert (move.row, move.col) == (1, 1)

    def test_opening_opponent_plays_o(self, wire):
        client, term = make_client(wire[0])
        client.handle(Packet.playing(Turn.OPPONENT))
        assert client.mark is Mark.O
        assert "Wait for your turn." in term.text

    def test_marks_follow_announcements(self, wire):
        """Test own and opponent moves land on the local board."""
        client_side, server_side = wire
        client, _ = make_client(client_side, ["0 0"])

        client.handle(Packet.playing(Turn.YOU))
        client.handle(Packet.playing(Turn.OPPONENT, 0, 0))
        recv_packet(server_side)

        assert client.board.get(0, 0) is Mark.X
        assert not client.my_turn

    def test_retries_bad_input(self, wire):
        """Test garbage and taken cells are re-prompted."""
        client_side, server_side = wire
        client, term = make_client(client_side, ["0 0"])
        client.handle(Packet.playing(Turn.OPPONENT))
        term.lines = ["hello", "5 5", "1,1", "0 2"]

        client.handle(Packet.playing(Turn.YOU, 1, 1))

        assert client.board.get(1, 1) is Mark.X
        assert "Please enter two numbers, e.g. 1 2" in term.output
        assert term.output.count("Please enter valid coordinates!") == 2
        move = recv_packet(server_side)
        assert (move.row, move.col) == (0, 2)

    def test_finished_win(self, wire):
        """Test the result message and the board is cleared afterwards."""
        client, term = make_client(wire[0])
        client.handle(Packet.playing(Turn.OPPONENT))
        client.my_turn = True

        client.handle(Packet.finished(Result.WON, 2, 2))

        assert client.last_result is Result.WON
        assert "Match concluded." in term.output
        assert RESULT_MESSAGES[Result.WON] in term.output
        assert client.board.is_empty(2, 2)

    def test_finished_loss_marks_opponent(self, wire):
        """Test the final move is drawn with the opponent's mark."""
        client, term = make_client(wire[0])
        client.handle(Packet.playing(Turn.OPPONENT))

        client.handle(Packet.finished(Result.LOST, 0, 1))

        assert client.last_result is Result.LOST
        assert " X" in term.output[-3].splitlines()[2]


class TestRun:
    """Tests for the receive loop."""

    def test_server_close_ends_run(self, wire):
        client_side, server_side = wire
        client, term = make_client(client_side)
        server_side.sendall(Packet.waiting().encode())
        server_side.close()

        client.run()

        assert term.output[-1] == "Server closed the connection."

    def test_eof_on_input_ends_run(self, wire):
        client_side, server_side = wire
        client, term = make_client(client_side, [])
        server_side.sendall(Packet.playing(Turn.YOU).encode())

        client.run()

        assert term.output[-1] == "Bye."

    def test_network_error_is_receive_error(self):
        """Test an OS error while reading surfaces as ReceiveError."""
        client, _ = make_client(TimedOutSocket())
        with pytest.raises(ReceiveError):
            client.receive()


class TestConnect:
    """Tests for connection setup."""

    def test_unresolvable(self):
        with pytest.raises(ResolveError):
            connect("nonexistent.invalid", 9034)

    def test_refused(self, free_port):
        with pytest.raises(ConnectError):
            connect("127.0.0.1", free_port, timeout=2.0)

    def test_exit_codes(self, free_port):
        """Test resolve and connect failures map to 2 and 3."""
        assert main(["--host", "nonexistent.invalid"]) == 2
        assert main(["--host", "127.0.0.1", "--port", str(free_port)]) == 3
