from __future__ import annotations

import asyncio
from typing import Any

import pytest

from bakery2048.websocket_hub import SessionWebSocketHub


class FakeSocket:
    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.accepted = False
        self.sent: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, payload: dict[str, Any]) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


class FakeHandle:
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.tasks: list[asyncio.Task[Any]] = []

    def spawn(self, coro):  # type: ignore[no-untyped-def]
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.append(task)
        return task


@pytest.mark.asyncio
async def test_broadcast_reaches_only_the_watched_session() -> None:
    hub = SessionWebSocketHub()
    a, b = FakeSocket(), FakeSocket()
    await hub.connect("s1", a)
    await hub.connect("s2", b)
    assert a.accepted and b.accepted

    await hub.broadcast("s1", {"type": "ping"})
    assert a.sent == [{"type": "ping"}]
    assert b.sent == []


@pytest.mark.asyncio
async def test_dead_sockets_are_dropped() -> None:
    hub = SessionWebSocketHub()
    good, bad = FakeSocket(), FakeSocket(broken=True)
    await hub.connect("s1", good)
    await hub.connect("s1", bad)

    await hub.broadcast("s1", {"type": "ping"})
    await hub.broadcast("s1", {"type": "pong"})
    assert good.sent == [{"type": "ping"}, {"type": "pong"}]

    await hub.disconnect("s1", good)
    assert hub.watched_sessions() == []


@pytest.mark.asyncio
async def test_closed_session_is_announced_and_forgotten() -> None:
    hub = SessionWebSocketHub()
    ws = FakeSocket()
    await hub.connect("s1", ws)
    await hub.connect("s2", FakeSocket())

    handle = FakeHandle("s1")
    hub.session_closed(handle)  # type: ignore[arg-type]
    await asyncio.gather(*handle.tasks)

    assert ws.sent == [{"type": "session_closed", "session_id": "s1"}]
    assert hub.watched_sessions() == ["s2"]

    # A late disconnect from the retired session is harmless.
    await hub.disconnect("s1", ws)
    assert hub.watched_sessions() == ["s2"]
