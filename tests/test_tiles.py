from __future__ import annotations

import pytest

from bakery2048 import tiles
from bakery2048.tiles import TileConfig

from conftest import FakeProfileStore


def test_parse_accepts_historical_field_names() -> None:
    parsed = tiles.parse_tiles(
        [
            {"tileValue": 2, "itemName": "Flour", "icon": "F", "backgroundColor": "#fff"},
            {"value": 4, "label": "Egg", "emoji": "E", "color": "#eee"},
            {"value": 8},
        ]
    )
    assert parsed == [
        TileConfig(value=2, name="Flour", emoji="F", color="#fff"),
        TileConfig(value=4, name="Egg", emoji="E", color="#eee"),
        TileConfig(value=8),
    ]


def test_parse_skips_invalid_records() -> None:
    parsed = tiles.parse_tiles([{"name": "no value"}, {"value": 3, "name": "Odd"}, {"value": 1}, {"value": 16}])
    assert [t.value for t in parsed] == [16]


def test_winning_tile_value() -> None:
    assert tiles.winning_tile_value([TileConfig(value=64), TileConfig(value=256)]) == 256
    assert tiles.winning_tile_value([]) == 512
    assert tiles.winning_tile_value([], default=2048) == 2048


@pytest.mark.asyncio
async def test_load_tile_table(store: FakeProfileStore) -> None:
    store.tiles = [{"tileValue": 2, "itemName": "Flour"}, {"tileValue": 1024, "itemName": "Croissant"}]
    table = await tiles.load_tile_table(store.make_client())
    assert table is not None
    assert sorted(table) == [2, 1024]
    assert tiles.winning_tile_value(table.values()) == 1024


@pytest.mark.asyncio
async def test_load_tile_table_falls_back_when_empty_or_failing(store: FakeProfileStore) -> None:
    assert await tiles.load_tile_table(store.make_client()) is None

    store.tiles = [{"tileValue": 2}]
    store.fail_methods = {"GET"}
    assert await tiles.load_tile_table(store.make_client()) is None
