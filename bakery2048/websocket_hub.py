from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable

from fastapi import WebSocket

from bakery2048.api.models import SessionView
from bakery2048.manager import SessionHandle, SessionObserver

logger = logging.getLogger(__name__)


async def _send_all(sockets: Iterable[WebSocket], payload: dict[str, object]) -> list[WebSocket]:
    """Send `payload` to every socket; returns the ones that failed."""

    dead: list[WebSocket] = []
    for ws in sockets:
        try:
            await ws.send_json(payload)
        except Exception:
            dead.append(ws)
    return dead


class SessionWebSocketHub(SessionObserver):
    """Pushes session state to the sockets watching it, keyed by session_id.

    Registered as a SessionManager observer. Every board/score/timer change goes
    out as `session_updated`; a closed (or replaced) session sends `session_closed`
    and forgets its sockets.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    def watched_sessions(self) -> list[str]:
        return list(self._by_session)

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._by_session[session_id].add(websocket)

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._forget(session_id, [websocket])

    async def broadcast(self, session_id: str, payload: dict[str, object]) -> None:
        async with self._lock:
            sockets = list(self._by_session.get(session_id, ()))
        dead = await _send_all(sockets, payload)
        if dead:
            logger.debug("Dropping %s dead websocket(s) for session %s", len(dead), session_id)
            async with self._lock:
                self._forget(session_id, dead)

    def _forget(self, session_id: str, sockets: Iterable[WebSocket]) -> None:
        conns = self._by_session.get(session_id)
        if conns is None:
            return
        conns.difference_update(sockets)
        if not conns:
            del self._by_session[session_id]

    # ---- SessionObserver ----

    def session_changed(self, handle: SessionHandle, view: SessionView) -> None:
        handle.spawn(
            self.broadcast(
                handle.session_id,
                {"type": "session_updated", "session_id": handle.session_id, "state": view.model_dump(mode="json")},
            )
        )

    def session_closed(self, handle: SessionHandle) -> None:
        handle.spawn(self._retire(handle.session_id))

    async def _retire(self, session_id: str) -> None:
        async with self._lock:
            sockets = self._by_session.pop(session_id, set())
        if sockets:
            await _send_all(sockets, {"type": "session_closed", "session_id": session_id})


hub = SessionWebSocketHub()
