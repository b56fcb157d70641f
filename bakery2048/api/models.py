from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from bakery2048.core.grid import Direction
from bakery2048.countdown import format_time


class SessionStatus(StrEnum):
    idle = "idle"
    active = "active"
    won = "won"
    lost = "lost"
    timed_out = "timed_out"


TERMINAL_STATUSES = frozenset({SessionStatus.won, SessionStatus.lost, SessionStatus.timed_out})


class SessionView(BaseModel):
    """Read-only snapshot of a session, handed to the UI and the stats synchronizer."""

    model_config = ConfigDict(frozen=True)

    board: list[list[int]]
    score: int
    best_score: int
    status: SessionStatus
    moves: int
    highest_tile: int
    winning_tile_value: int
    time_limit_seconds: int
    time_remaining_seconds: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def elapsed_seconds(self) -> int:
        return self.time_limit_seconds - self.time_remaining_seconds

    @computed_field  # type: ignore[prop-decorator]
    @property
    def timer_text(self) -> str:
        return format_time(self.time_remaining_seconds)


class MoveRequest(BaseModel):
    direction: Direction


class IdentityRequest(BaseModel):
    token: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    role: str = "Player"
    profile_id: str | None = None


class SessionResponse(BaseModel):
    session_id: str
    moved: bool | None = None
    state: SessionView


class ExitResponse(BaseModel):
    session_id: str
    flushed: bool
