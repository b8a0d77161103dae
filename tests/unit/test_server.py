"""
End-to-end tests: a real GameServer on loopback, raw sockets as clients.
"""

from conftest import recv_packet, send_move
from gameserver import server as server_module
from gameserver.errors import SendTimeout, WaitError
from gameserver.game.packet import Packet, Phase, Result, Turn
from gameserver.server import MAX_WAIT_FAILURES, GameServer


def pair(server):
    """Connect two clients and read their opening packets."""
    a = server.connect()
    assert recv_packet(a) == Packet.waiting()
    b = server.connect()
    assert recv_packet(a) == Packet.playing(Turn.YOU)
    assert recv_packet(b) == Packet.playing(Turn.OPPONENT)
    return a, b


class TestMatch:
    """Tests for a full match over the wire."""

    def test_pairing(self, test_server):
        """Test first client waits, second starts the match."""
        pair(test_server)

    def test_move_is_relayed(self, test_server):
        """Test both sides hear about a move."""
        a, b = pair(test_server)

        send_move(a, 0, 0)

        assert recv_packet(a) == Packet(Phase.PLAYING, Turn.OPPONENT, 0, 0)
        assert recv_packet(b) == Packet(Phase.PLAYING, Turn.YOU, 0, 0)

    def test_bad_move_gets_no_reply(self, test_server):
        """Test an out-of-turn move is ignored and the match goes on."""
        a, b = pair(test_server)

        send_move(b, 1, 1)
        send_move(a, 2, 2)

        # The first thing b hears is a's move, nothing about its own
        assert recv_packet(b) == Packet(Phase.PLAYING, Turn.YOU, 2, 2)
        assert recv_packet(a) == Packet(Phase.PLAYING, Turn.OPPONENT, 2, 2)

    def test_win_then_rematch(self, start_server):
        """Test the result packets, then the swapped rematch after the delay."""
        server = start_server(reset_delay=0.1)
        a, b = pair(server)

        for mover, other, (r, c) in [
            (a, b, (0, 0)), (b, a, (1, 1)),
            (a, b, (0, 1)), (b, a, (2, 2)),
        ]:
            send_move(mover, r, c)
            assert recv_packet(mover).turn == Turn.OPPONENT
            assert recv_packet(other).turn == Turn.YOU

        send_move(a, 0, 2)
        assert recv_packet(a) == Packet.finished(Result.WON, 0, 2)
        assert recv_packet(b) == Packet.finished(Result.LOST, 0, 2)

        # b now holds seat one and moves first
        assert recv_packet(b) == Packet.waiting()
        assert recv_packet(b) == Packet.playing(Turn.YOU)
        assert recv_packet(a) == Packet.playing(Turn.OPPONENT)


class TestConnections:
    """Tests for connection churn."""

    def test_opponent_leaves(self, test_server):
        """Test the remaining player is told to wait again."""
        a, b = pair(test_server)

        b.close()

        assert recv_packet(a) == Packet.waiting()

    def test_newcomer_after_leave_starts_match(self, test_server):
        """Test a new client pairs with the one left behind."""
        a, b = pair(test_server)
        a.close()
        assert recv_packet(b) == Packet.waiting()

        c = test_server.connect()

        assert recv_packet(b) == Packet.playing(Turn.YOU)
        assert recv_packet(c) == Packet.playing(Turn.OPPONENT)

    def test_third_client_rejected(self, test_server):
        """Test the connection is closed when there's no waiting line."""
        a, b = pair(test_server)

        c = test_server.connect()

        assert recv_packet(c) is None
        # The match is unaffected
        send_move(a, 1, 1)
        assert recv_packet(b) == Packet(Phase.PLAYING, Turn.YOU, 1, 1)

    def test_third_client_queued_then_seated(self, start_server):
        """Test a queued client takes over a free seat."""
        server = start_server(max_queued=1)
        a, b = pair(server)

        c = server.connect()
        assert recv_packet(c) == Packet.waiting()

        a.close()

        assert recv_packet(b) == Packet.waiting()
        assert recv_packet(b) == Packet.playing(Turn.YOU)
        assert recv_packet(c) == Packet.playing(Turn.OPPONENT)


class TestFailures:
    """Tests for per-connection and loop-level failures."""

    def test_failed_send_drops_peer(self, test_server, monkeypatch):
        """Test a peer that can't be written to is closed and its opponent waits."""
        a, b = pair(test_server)
        session = test_server.server.session
        real_send_packet = server_module.send_packet

        def stalled_for_seat_two(handle, packet, max_attempts=10):
            if handle is session.player_two:
                raise SendTimeout("stalled", sent=0, total=16)
            return real_send_packet(handle, packet, max_attempts)

        monkeypatch.setattr(server_module, "send_packet", stalled_for_seat_two)

        send_move(a, 0, 0)

        assert recv_packet(a) == Packet(Phase.PLAYING, Turn.OPPONENT, 0, 0)
        assert recv_packet(a) == Packet(Phase.WAITING, 0, -1, -1)
        assert recv_packet(b) is None

    def test_wait_failures_stop_loop(self, config, monkeypatch):
        """Test a selector that keeps failing ends the loop instead of spinning."""
        server = GameServer(config)
        calls = []

        def broken_poll(timeout=None):
            calls.append(timeout)
            raise WaitError("Wait failed: bad file descriptor")

        monkeypatch.setattr(server.transport, "poll", broken_poll)
        server._running = True

        server._loop()

        assert not server.is_running
        assert len(calls) == MAX_WAIT_FAILURES

    def test_single_wait_failure_recovers(self, config, monkeypatch):
        """Test one failed wait doesn't count against later ones."""
        server = GameServer(config)
        results = [WaitError("blip"), [], WaitError("blip"), None]

        def flaky_poll(timeout=None):
            result = results.pop(0)
            if isinstance(result, Exception):
                raise result
            if result is None:
                server.shutdown()
                return []
            return result

        monkeypatch.setattr(server.transport, "poll", flaky_poll)
        server._running = True

        server._loop()

        assert server._wait_failures == 0
        assert results == []
