from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator


def parse_play_time(value: str | int | None) -> int:
    """Parse the store's `HH:MM:SS` play time into seconds (anything else -> 0)."""

    if value is None:
        return 0
    if isinstance(value, int):
        return max(value, 0)
    parts = str(value).split(":")
    if len(parts) != 3:
        return 0
    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError:
        return 0
    return hours * 3600 + minutes * 60 + seconds


def format_play_time(seconds: int) -> str:
    hours, rest = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class StatsSnapshot(BaseModel):
    """Durable per-player aggregate exchanged with the profile store.

    Wire names are camelCase; `total_play_time_seconds` travels as `totalPlayTime` ("HH:MM:SS").
    Frozen: merges build a new snapshot with `model_copy(update=...)`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    current_score: int = Field(0, alias="currentScore")
    highest_score: int = Field(0, alias="highestScore")
    best_tile_achieved: int = Field(0, alias="bestTileAchieved")
    level: int = 1
    games_played: int = Field(0, alias="gamesPlayed")
    average_score: float = Field(0.0, alias="averageScore")
    total_play_time_seconds: int = Field(
        0,
        validation_alias=AliasChoices("totalPlayTime", "totalPlayTimeSeconds", "total_play_time_seconds"),
        serialization_alias="totalPlayTime",
    )
    win_streak: int = Field(0, alias="winStreak")
    total_moves: int = Field(0, alias="totalMoves")
    power_ups_used: int = Field(0, alias="powerUpsUsed")
    favorite_item: str | None = Field(None, alias="favoriteItem")

    @field_validator(
        "current_score",
        "highest_score",
        "best_tile_achieved",
        "games_played",
        "win_streak",
        "total_moves",
        "power_ups_used",
        "average_score",
        mode="before",
    )
    @classmethod
    def _missing_numbers_are_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("level", mode="before")
    @classmethod
    def _missing_level_is_one(cls, v: Any) -> Any:
        return v or 1

    @field_validator("total_play_time_seconds", mode="before")
    @classmethod
    def _parse_play_time(cls, v: Any) -> int:
        return parse_play_time(v)

    @field_serializer("total_play_time_seconds")
    def _serialize_play_time(self, v: int) -> str:
        return format_play_time(v)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PlayerProfile(BaseModel):
    """A player record as listed by the store; only the fields the core needs."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    username: str

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> str:
        return str(v)
