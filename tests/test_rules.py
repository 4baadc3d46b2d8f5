from __future__ import annotations

import pytest

from tictactoe.core.board import Cell, board_from_string
from tictactoe.core.rules import LINES, LineThreat, check_draw, check_win, find_threats, is_legal


@pytest.mark.parametrize("line", LINES)
def test_check_win_reports_each_canonical_line(line: tuple[int, int, int]) -> None:
    board = [Cell.empty] * 9
    for i in line:
        board[i] = Cell.o

    assert check_win(tuple(board)) == (Cell.o, line)


def test_check_win_none_on_full_board_without_three_in_a_row() -> None:
    board = board_from_string("XOX XOO OXX")
    assert check_win(board) is None
    assert check_draw(board) is True


def test_check_win_reports_first_line_in_scan_order() -> None:
    # Unreachable in play, but the answer must be deterministic: row 0 before column 0.
    board = board_from_string("XXX X-- X--")
    assert check_win(board) == (Cell.x, (0, 1, 2))


def test_check_draw_false_while_cells_remain_or_when_won() -> None:
    assert check_draw(board_from_string("XOX XOO OX-")) is False
    assert check_draw(board_from_string("XXX OOX OXO")) is False


def test_is_legal() -> None:
    board = board_from_string("X-- --- --O")
    assert is_legal(board, 1)
    assert not is_legal(board, 0)
    assert not is_legal(board, 8)
    assert not is_legal(board, -1)
    assert not is_legal(board, 9)
    assert not is_legal(board, True)
    assert not is_legal(board, "1")


def test_find_threats_two_of_three_with_empty_third() -> None:
    board = board_from_string("XX- OO- ---")

    assert find_threats(board, Cell.x) == [LineThreat(line=(0, 1, 2), cell=2)]
    assert find_threats(board, Cell.o) == [LineThreat(line=(3, 4, 5), cell=5)]


def test_find_threats_ignores_blocked_lines() -> None:
    board = board_from_string("XXO --- ---")
    assert find_threats(board, Cell.x) == []
