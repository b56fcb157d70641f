from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

Board = list[list[int]]

DEFAULT_GRID_SIZE = 4

# Probability that a freshly spawned tile is a 2 (otherwise 4).
SPAWN_TWO_PROBABILITY = 0.9


class BoardInvariantError(RuntimeError):
    """A value that can never be produced by spawning/merging showed up on the board."""


class Direction(StrEnum):
    left = "left"
    right = "right"
    up = "up"
    down = "down"


@dataclass(frozen=True, slots=True)
class LineMerge:
    values: list[int]
    score: int


@dataclass(frozen=True, slots=True)
class MoveResult:
    moved: bool
    score: int


def create_board(size: int = DEFAULT_GRID_SIZE) -> Board:
    if size < 2:
        raise ValueError("Board size must be at least 2")
    return [[0] * size for _ in range(size)]


def copy_board(board: Board) -> Board:
    return [list(row) for row in board]


def empty_cells(board: Board) -> list[tuple[int, int]]:
    return [(i, j) for i, row in enumerate(board) for j, value in enumerate(row) if value == 0]


def spawn_tile(board: Board, rng: random.Random) -> Board:
    """Place a 2 (90%) or a 4 (10%) on a uniformly chosen empty cell.

    A full board is left untouched.
    """

    cells = empty_cells(board)
    if not cells:
        return board
    i, j = rng.choice(cells)
    board[i][j] = 2 if rng.random() < SPAWN_TWO_PROBABILITY else 4
    return board


def merge_line(line: Sequence[int]) -> LineMerge:
    """Slide and merge one row/column towards index 0.

    Each tile takes part in at most one merge per pass, so `[2, 2, 2, 0]`
    becomes `[4, 2, 0, 0]` and `[2, 2, 2, 2]` becomes `[4, 4, 0, 0]`.
    """

    size = len(line)
    compacted = [v for v in line if v != 0]

    score = 0
    for idx in range(len(compacted) - 1):
        if compacted[idx] != 0 and compacted[idx] == compacted[idx + 1]:
            compacted[idx] *= 2
            compacted[idx + 1] = 0
            score += compacted[idx]

    merged = [v for v in compacted if v != 0]
    merged.extend([0] * (size - len(merged)))
    return LineMerge(values=merged, score=score)


def _read_line(board: Board, index: int, direction: Direction) -> list[int]:
    if direction in (Direction.left, Direction.right):
        line = list(board[index])
    else:
        line = [row[index] for row in board]
    if direction in (Direction.right, Direction.down):
        line.reverse()
    return line


def _write_line(board: Board, index: int, direction: Direction, line: list[int]) -> None:
    if direction in (Direction.right, Direction.down):
        line = list(reversed(line))
    if direction in (Direction.left, Direction.right):
        board[index] = line
    else:
        for i, value in enumerate(line):
            board[i][index] = value


def move(board: Board, direction: Direction | str) -> MoveResult:
    """Apply a move in place.

    `moved` is True if any cell value changed. Unknown directions raise ValueError.
    """

    direction = Direction(direction)

    moved = False
    score = 0
    for index in range(len(board)):
        before = _read_line(board, index, direction)
        merged = merge_line(before)
        if merged.values != before:
            moved = True
        score += merged.score
        _write_line(board, index, direction, merged.values)

    return MoveResult(moved=moved, score=score)


def is_terminal(board: Board) -> bool:
    if empty_cells(board):
        return False

    size = len(board)
    for i in range(size):
        for j in range(size):
            value = board[i][j]
            if j + 1 < size and board[i][j + 1] == value:
                return False
            if i + 1 < size and board[i + 1][j] == value:
                return False
    return True


def has_reached_value(board: Board, target: int) -> bool:
    return any(value == target for row in board for value in row)


def highest_tile(board: Board) -> int:
    return max((value for row in board for value in row), default=0)


def is_tile_value(value: int) -> bool:
    return value >= 2 and value & (value - 1) == 0


def validate_board(board: Board) -> None:
    for i, row in enumerate(board):
        if len(row) != len(board):
            raise BoardInvariantError(f"Row {i} has {len(row)} cells on a {len(board)}x{len(board)} board")
        for j, value in enumerate(row):
            if value != 0 and not is_tile_value(value):
                raise BoardInvariantError(f"Invalid tile value {value} at ({i}, {j})")
