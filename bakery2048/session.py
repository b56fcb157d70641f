from __future__ import annotations

import logging
import random
from collections.abc import Callable

from bakery2048.api.models import SessionStatus, SessionView
from bakery2048.config import DEFAULT_TIME_LIMIT_SECONDS, DEFAULT_WINNING_TILE
from bakery2048.core import grid
from bakery2048.core.events import Outcome, TerminalEvent
from bakery2048.core.grid import Direction
from bakery2048.countdown import Countdown
from bakery2048.fsm import SessionFSM

logger = logging.getLogger(__name__)

TerminalListener = Callable[[TerminalEvent], None]
ChangeListener = Callable[[SessionView], None]
CountdownFactory = Callable[[Callable[[], None]], Countdown]


def _default_countdown(on_tick: Callable[[], None]) -> Countdown:
    return Countdown(on_tick=on_tick)


class GameSession:
    """One timed puzzle game: board, score, countdown and lifecycle.

    The session owns its board; callers only ever see copies through `view()`.
    Moves after the game ended are ignored. Every terminal transition stops the
    countdown first and then notifies terminal listeners exactly once.
    """

    def __init__(
        self,
        *,
        size: int = grid.DEFAULT_GRID_SIZE,
        time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS,
        winning_tile_value: int = DEFAULT_WINNING_TILE,
        rng: random.Random | None = None,
        countdown_factory: CountdownFactory | None = None,
    ) -> None:
        if time_limit_seconds <= 0:
            raise ValueError("time_limit_seconds must be positive")

        self.size = size
        self.time_limit_seconds = time_limit_seconds
        self.best_score = 0
        self._winning_tile_value = DEFAULT_WINNING_TILE
        self.configure_winning_tile(winning_tile_value)

        self._rng = rng or random.Random()
        self._countdown_factory = countdown_factory or _default_countdown
        self._countdown: Countdown | None = None
        self._fsm = SessionFSM()

        self._terminal_listeners: list[TerminalListener] = []
        self._change_listeners: list[ChangeListener] = []

        self._start_fresh()

    # ---- observable state ----

    @property
    def status(self) -> SessionStatus:
        return self._fsm.status

    @property
    def game_over(self) -> bool:
        return self._fsm.game_over

    @property
    def board(self) -> grid.Board:
        return grid.copy_board(self._board)

    @property
    def elapsed_seconds(self) -> int:
        return self.time_limit_seconds - self.time_remaining_seconds

    @property
    def winning_tile_value(self) -> int:
        return self._winning_tile_value

    def view(self) -> SessionView:
        return SessionView(
            board=grid.copy_board(self._board),
            score=self.score,
            best_score=self.best_score,
            status=self.status,
            moves=self.moves,
            highest_tile=self.highest_tile,
            winning_tile_value=self._winning_tile_value,
            time_limit_seconds=self.time_limit_seconds,
            time_remaining_seconds=self.time_remaining_seconds,
        )

    def add_terminal_listener(self, listener: TerminalListener) -> None:
        self._terminal_listeners.append(listener)

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    # ---- configuration ----

    def configure_winning_tile(self, value: int) -> None:
        if not grid.is_tile_value(value):
            raise ValueError(f"Winning tile must be a power of two >= 2, got {value}")
        self._winning_tile_value = value

    def seed_best_score(self, best: int) -> None:
        if best > self.best_score:
            self.best_score = best
            self._notify_changed()

    # ---- operations ----

    def apply_move(self, direction: Direction | str) -> bool:
        """Apply one player move. Returns True if the board changed.

        Invalid directions raise ValueError; moves in a finished game are ignored.
        The first accepted move starts the countdown, which needs a running event
        loop by default; without one it raises RuntimeError and nothing changes.
        """

        direction = Direction(direction)
        if not self._fsm.accepts_moves:
            return False

        board = grid.copy_board(self._board)
        result = grid.move(board, direction)
        if not result.moved:
            return False

        if self.status == SessionStatus.idle:
            # Start the clock before committing anything: if it cannot start, the session stays untouched.
            self._start_countdown()
            self._fsm.begin()

        self._board = board
        grid.spawn_tile(self._board, self._rng)
        grid.validate_board(self._board)

        self.moves += 1
        self.score += result.score
        self.best_score = max(self.best_score, self.score)
        self.highest_tile = max(self.highest_tile, grid.highest_tile(self._board))

        if grid.has_reached_value(self._board, self._winning_tile_value):
            self._finish(Outcome.won)
        elif grid.is_terminal(self._board):
            self._finish(Outcome.lost)

        self._notify_changed()
        return True

    def tick(self) -> None:
        """Advance the countdown by one second."""

        if self.status != SessionStatus.active:
            return

        if self.time_remaining_seconds > 0:
            self.time_remaining_seconds -= 1
        if self.time_remaining_seconds == 0:
            self._finish(Outcome.timed_out)

        self._notify_changed()

    def reset(self) -> None:
        self._stop_countdown()
        self._fsm.restart()
        self._start_fresh()
        self._notify_changed()

    def close(self) -> None:
        """Stop the countdown and drop listeners. The session is unusable afterwards."""

        self._stop_countdown()
        self._terminal_listeners.clear()
        self._change_listeners.clear()

    # ---- internals ----

    def _start_fresh(self) -> None:
        self._board = grid.create_board(self.size)
        grid.spawn_tile(self._board, self._rng)
        grid.spawn_tile(self._board, self._rng)
        self.score = 0
        self.moves = 0
        self.highest_tile = grid.highest_tile(self._board)
        self.time_remaining_seconds = self.time_limit_seconds

    def _start_countdown(self) -> None:
        self._stop_countdown()
        countdown = self._countdown_factory(self.tick)
        countdown.start()
        self._countdown = countdown

    def _stop_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _finish(self, outcome: Outcome) -> None:
        if outcome == Outcome.won:
            self._fsm.win()
        elif outcome == Outcome.lost:
            self._fsm.lose()
        else:
            self._fsm.time_out()
        self._stop_countdown()

        event = TerminalEvent.now(
            outcome=outcome,
            final_score=self.score,
            moves=self.moves,
            highest_tile=self.highest_tile,
            elapsed_seconds=self.elapsed_seconds,
        )
        logger.info("Session finished: %s score=%s moves=%s", outcome.value, self.score, self.moves)
        for listener in list(self._terminal_listeners):
            listener(event)

    def _notify_changed(self) -> None:
        if not self._change_listeners:
            return
        view = self.view()
        for listener in list(self._change_listeners):
            listener(view)
