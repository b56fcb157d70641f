from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from bakery2048.config import DEFAULT_WINNING_TILE
from bakery2048.core.grid import is_tile_value
from bakery2048.stats.client import ProfileStoreClient, ProfileStoreError

logger = logging.getLogger(__name__)


class TileConfig(BaseModel):
    """Display metadata for one tile value. The store has used several field names over time."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    value: int = Field(..., validation_alias=AliasChoices("tileValue", "value"))
    name: str = Field("", validation_alias=AliasChoices("itemName", "name", "label"))
    emoji: str = Field("", validation_alias=AliasChoices("icon", "emoji"))
    color: str | None = Field(None, validation_alias=AliasChoices("color", "backgroundColor"))


def parse_tiles(items: Iterable[Mapping[str, Any]]) -> list[TileConfig]:
    tiles: list[TileConfig] = []
    for item in items:
        try:
            tile = TileConfig.model_validate(item)
        except ValidationError:
            logger.debug("Skipping malformed tile record: %r", item)
            continue
        if not is_tile_value(tile.value):
            logger.warning("Ignoring tile with non power-of-two value %s", tile.value)
            continue
        tiles.append(tile)
    return tiles


def winning_tile_value(tiles: Iterable[TileConfig], *, default: int = DEFAULT_WINNING_TILE) -> int:
    """The highest configured tile value wins the game; `default` if nothing is configured."""

    return max((t.value for t in tiles), default=default)


async def load_tile_table(client: ProfileStoreClient) -> dict[int, TileConfig] | None:
    """Fetch configured tiles. None means "keep the default winning tile" (request failed or nothing configured)."""

    try:
        raw = await client.fetch_tiles()
    except ProfileStoreError as e:
        logger.warning("Failed to load tiles from API: %s", e)
        return None

    tiles = parse_tiles(raw)
    if not tiles:
        logger.warning("No tiles returned from API, keeping the default winning tile")
        return None

    logger.info("Tiles loaded: %s tiles", len(tiles))
    return {t.value: t for t in tiles}
