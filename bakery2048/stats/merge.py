"""Pure snapshot merges.

Each function takes the snapshot just fetched from the store plus local deltas
and returns a new snapshot to write back. Nothing here touches the network.

Only `merge_final` changes `games_played`/`average_score`, so a progress write
followed by a final write never counts a game twice.
"""

from __future__ import annotations

from dataclasses import dataclass

from bakery2048.core.events import TerminalEvent
from bakery2048.stats.models import StatsSnapshot


@dataclass(frozen=True, slots=True)
class ProgressDelta:
    added_seconds: int
    added_moves: int
    highest_tile: int


def merge_progress(remote: StatsSnapshot, delta: ProgressDelta) -> StatsSnapshot:
    return remote.model_copy(
        update={
            "best_tile_achieved": max(delta.highest_tile, remote.best_tile_achieved),
            "total_play_time_seconds": remote.total_play_time_seconds + delta.added_seconds,
            "total_moves": remote.total_moves + delta.added_moves,
        }
    )


def merge_final(remote: StatsSnapshot, event: TerminalEvent, delta: ProgressDelta) -> StatsSnapshot:
    games = remote.games_played + 1
    average = (remote.average_score * remote.games_played + event.final_score) / games

    return remote.model_copy(
        update={
            "current_score": event.final_score,
            "highest_score": max(event.final_score, remote.highest_score),
            "best_tile_achieved": max(event.highest_tile, remote.best_tile_achieved),
            "games_played": games,
            "average_score": round(average, 2),
            "total_play_time_seconds": remote.total_play_time_seconds + delta.added_seconds,
            "win_streak": remote.win_streak + 1 if event.is_win else 0,
            "total_moves": remote.total_moves + delta.added_moves,
        }
    )
