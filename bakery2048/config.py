from __future__ import annotations

import os
from dataclasses import dataclass

from bakery2048.core.grid import DEFAULT_GRID_SIZE

DEFAULT_API_BASE_URL = "http://localhost:5130/api"
DEFAULT_TIME_LIMIT_SECONDS = 7 * 60
DEFAULT_WINNING_TILE = 512


@dataclass(frozen=True, slots=True)
class SyncSettings:
    # Autosave cadence while a session is active.
    autosave_interval_seconds: float = 30.0
    # Ignore accidental starts: nothing is written before this much play time.
    autosave_min_seconds: int = 10
    exit_flush_min_seconds: int = 5


@dataclass(frozen=True, slots=True)
class GameSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout_seconds: float = 10.0
    grid_size: int = DEFAULT_GRID_SIZE
    time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS
    default_winning_tile: int = DEFAULT_WINNING_TILE
    sync: SyncSettings = SyncSettings()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def settings_from_env() -> GameSettings:
    return GameSettings(
        api_base_url=os.environ.get("BAKERY_API_BASE_URL", DEFAULT_API_BASE_URL).rstrip("/"),
        api_timeout_seconds=_env_float("BAKERY_API_TIMEOUT_SECONDS", 10.0),
        grid_size=_env_int("BAKERY_GRID_SIZE", DEFAULT_GRID_SIZE),
        time_limit_seconds=_env_int("BAKERY_TIME_LIMIT_SECONDS", DEFAULT_TIME_LIMIT_SECONDS),
        default_winning_tile=_env_int("BAKERY_WINNING_TILE", DEFAULT_WINNING_TILE),
    )
