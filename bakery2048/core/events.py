from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class Outcome(StrEnum):
    won = "won"
    lost = "lost"
    timed_out = "timed_out"


@dataclass(frozen=True, slots=True)
class TerminalEvent:
    """Emitted once when a session reaches won/lost/timed_out."""

    outcome: Outcome
    final_score: int
    moves: int
    highest_tile: int
    elapsed_seconds: int
    ts: datetime

    @property
    def is_win(self) -> bool:
        return self.outcome == Outcome.won

    @staticmethod
    def now(
        *,
        outcome: Outcome,
        final_score: int,
        moves: int,
        highest_tile: int,
        elapsed_seconds: int,
    ) -> "TerminalEvent":
        return TerminalEvent(
            outcome=outcome,
            final_score=final_score,
            moves=moves,
            highest_tile=highest_tile,
            elapsed_seconds=elapsed_seconds,
            ts=datetime.now(UTC),
        )
