"""
Unit tests for the board model.
"""

import pytest

from gameserver.game.board import (
    LINES,
    Board,
    Mark,
    OutcomeKind,
    evaluate,
)


X, O, _ = Mark.X, Mark.O, Mark.EMPTY


class TestBoard:
    """Tests for Board mutation."""

    def test_starts_empty(self):
        """Test that a new board has nine empty cells."""
        board = Board()
        assert all(cell is Mark.EMPTY for row in board.rows() for cell in row)
        assert not board.is_full

    def test_place_claims_cell(self):
        """Test placing a mark."""
        board = Board()
        board.place(1, 2, X)
        assert board.get(1, 2) is X
        assert not board.is_empty(1, 2)

    def test_place_twice_rejected(self):
        """Test that an owned cell can't change owner."""
        board = Board()
        board.place(0, 0, X)
        with pytest.raises(ValueError):
            board.place(0, 0, O)
        assert board.get(0, 0) is X

    @pytest.mark.parametrize("row,col", [(-1, 0), (0, 3), (3, 3), (-1, -1)])
    def test_place_off_board_rejected(self, row, col):
        """Test out-of-range coordinates."""
        with pytest.raises(ValueError):
            Board().place(row, col, X)

    def test_is_empty_false_off_board(self):
        """Test that off-board cells are never 'empty'."""
        assert Board().is_empty(3, 0) is False

    def test_place_empty_mark_rejected(self):
        """Test that EMPTY can't be placed."""
        with pytest.raises(ValueError):
            Board().place(0, 0, Mark.EMPTY)

    def test_clear(self):
        """Test that clear() wipes every cell."""
        board = Board.from_rows([[X, O, X], [O, X, O], [O, X, O]])
        board.clear()
        assert board.rows() == [[_, _, _]] * 3

    def test_render(self):
        """Test the text rendering used by the client."""
        board = Board.from_rows([[X, _, _], [_, O, _], [_, _, _]])
        lines = board.render().splitlines()
        assert lines[0] == "   0 1 2"
        assert lines[2] == "0| X    "
        assert lines[3] == "1|   O  "


class TestEvaluate:
    """Tests for win/draw detection."""

    def test_eight_lines(self):
        """Test that rows, columns and both diagonals are checked."""
        assert len(LINES) == 8

    def test_empty_board_no_result(self):
        """Test no result on an empty board."""
        assert evaluate(Board()).kind is OutcomeKind.NONE

    def test_row_zero_win(self):
        """Test [[A,A,A],[_,B,_],[_,_,B]] is a win for A."""
        board = Board.from_rows([[X, X, X], [_, O, _], [_, _, O]])
        outcome = evaluate(board)
        assert outcome.kind is OutcomeKind.WIN
        assert outcome.winner is X

    @pytest.mark.parametrize("line", LINES)
    @pytest.mark.parametrize("mark", [X, O])
    def test_every_line_wins(self, line, mark):
        """Test each line for each mark."""
        board = Board()
        for r, c in line:
            board.place(r, c, mark)
        outcome = board.evaluate()
        assert outcome.kind is OutcomeKind.WIN
        assert outcome.winner is mark

    def test_full_board_without_line_is_draw(self):
        """Test a full board with no three in a row."""
        board = Board.from_rows([[X, O, X], [X, O, O], [O, X, X]])
        outcome = evaluate(board)
        assert outcome.kind is OutcomeKind.DRAW
        assert outcome.winner is None
        assert outcome.is_terminal

    def test_win_beats_draw_on_full_board(self):
        """Test a full board that also has a line reports the win."""
        board = Board.from_rows([[X, X, X], [O, O, X], [X, O, O]])
        assert board.is_full
        outcome = evaluate(board)
        assert outcome.kind is OutcomeKind.WIN
        assert outcome.winner is X

    def test_partial_board_no_result(self):
        """Test a board still in play."""
        board = Board.from_rows([[X, O, _], [_, X, _], [_, _, O]])
        outcome = evaluate(board)
        assert outcome.kind is OutcomeKind.NONE
        assert not outcome.is_terminal


class TestMark:
    """Tests for Mark helpers."""

    def test_opponent(self):
        assert X.opponent is O
        assert O.opponent is X

    def test_empty_has_no_opponent(self):
        with pytest.raises(ValueError):
            Mark.EMPTY.opponent
