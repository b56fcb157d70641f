from __future__ import annotations

import json
import random
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest

from bakery2048.stats.client import ProfileStoreClient

STORE_BASE_URL = "http://store.test/api"
TOKEN = "token-123"


class FixedRng(random.Random):
    """Always spawns a 2 on the first empty cell (row-major)."""

    def random(self) -> float:
        return 0.0

    def choice(self, seq):  # type: ignore[no-untyped-def, override]
        return seq[0]


class FakeCountdown:
    """Stands in for the asyncio countdown; tests drive `session.tick()` by hand."""

    def __init__(self, on_tick: Callable[[], None]) -> None:
        self.on_tick = on_tick
        self.started = False
        self.cancelled = False

    @property
    def running(self) -> bool:
        return self.started and not self.cancelled

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True


class FakeProfileStore:
    """In-memory stand-in for the players/tiles REST service, served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.players: dict[str, dict[str, Any]] = {}
        self.tiles: list[dict[str, Any]] = []
        self.fail_methods: set[str] = set()
        self.requests: list[tuple[str, str, dict[str, Any] | None]] = []

    def add_player(self, player_id: str, username: str, **stats: Any) -> dict[str, Any]:
        record = {"id": int(player_id), "username": username, **stats}
        self.players[player_id] = record
        return record

    def puts(self) -> list[dict[str, Any]]:
        return [body for method, _, body in self.requests if method == "PUT" and body is not None]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path.removeprefix("/api")
        self.requests.append((request.method, path, body))

        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return httpx.Response(401, json={"message": "Unauthorized"})
        if request.method in self.fail_methods:
            return httpx.Response(500, json={"message": "store unavailable"})

        if path == "/tiles" and request.method == "GET":
            return httpx.Response(200, json=self.tiles)
        if path == "/players" and request.method == "GET":
            return httpx.Response(200, json=list(self.players.values()))
        if path.startswith("/players/"):
            pid = path.removeprefix("/players/")
            if pid not in self.players:
                return httpx.Response(404, json={"message": "Player not found"})
            if request.method == "GET":
                return httpx.Response(200, json=self.players[pid])
            if request.method == "PUT":
                self.players[pid] = {**self.players[pid], **(body or {})}
                return httpx.Response(204)
        return httpx.Response(404, json={"message": "Not found"})

    def make_client(self, token: str | None = TOKEN) -> ProfileStoreClient:
        return ProfileStoreClient(
            base_url=STORE_BASE_URL,
            token=token,
            transport=httpx.MockTransport(self.handler),
            blocking_transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture()
def store() -> FakeProfileStore:
    s = FakeProfileStore()
    s.add_player(
        "42",
        "baker",
        currentScore=10,
        highestScore=100,
        bestTileAchieved=64,
        level=3,
        gamesPlayed=4,
        averageScore=50.0,
        totalPlayTime="00:10:00",
        winStreak=2,
        totalMoves=300,
        powerUpsUsed=1,
        favoriteItem="Pie",
    )
    return s


@pytest.fixture()
def countdowns() -> list[FakeCountdown]:
    return []


@pytest.fixture()
def countdown_factory(countdowns: list[FakeCountdown]) -> Callable[[Callable[[], None]], FakeCountdown]:
    def _make(on_tick: Callable[[], None]) -> FakeCountdown:
        cd = FakeCountdown(on_tick)
        countdowns.append(cd)
        return cd

    return _make


@pytest.fixture()
def api_client(store: FakeProfileStore, countdown_factory):  # type: ignore[no-untyped-def]
    """FastAPI TestClient wired to the fake profile store and fakeredis."""

    import fakeredis
    from fastapi.testclient import TestClient

    from bakery2048.api.deps import get_redis, init_manager, reset_manager_for_tests
    from bakery2048.main import app
    from bakery2048.manager import SessionManager

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    reset_manager_for_tests()
    init_manager(
        SessionManager(
            client_factory=store.make_client,
            countdown_factory=countdown_factory,
            rng_factory=FixedRng,
        )
    )
    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    reset_manager_for_tests()
