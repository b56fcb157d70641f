from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from bakery2048.api.models import SessionStatus, SessionView
from bakery2048.config import GameSettings
from bakery2048.core.events import TerminalEvent
from bakery2048.identity import Identity, ProfileIdCache, resolve_profile_id
from bakery2048.session import CountdownFactory, GameSession
from bakery2048.stats.client import ProfileStoreClient
from bakery2048.stats.sync import StatsSynchronizer
from bakery2048.tiles import load_tile_table, winning_tile_value

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str | None], ProfileStoreClient]


class AuthenticationRequired(ValueError):
    pass


class SessionObserver:
    """Hooks for whoever renders the game. Override what you need."""

    def session_replaced(self, handle: "SessionHandle") -> None:
        pass

    def session_changed(self, handle: "SessionHandle", view: SessionView) -> None:
        pass

    def session_closed(self, handle: "SessionHandle") -> None:
        pass


@dataclass(slots=True)
class SessionHandle:
    """Everything that lives and dies with one player's game screen."""

    session_id: str
    identity: Identity
    session: GameSession
    sync: StatsSynchronizer
    client: ProfileStoreClient
    autosave_task: asyncio.Task[None] | None = None
    tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self.tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self.tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed for session %s", self.session_id, exc_info=task.exception())

    def stop_autosave(self) -> None:
        task, self.autosave_task = self.autosave_task, None
        if task is not None and not task.done():
            task.cancel()

    async def wait_idle(self) -> None:
        """Wait for in-flight background work (syncs, profile load) to finish."""

        pending = [t for t in self.tasks if t is not self.autosave_task]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def _default_client_factory(settings: GameSettings) -> ClientFactory:
    def _make(token: str | None) -> ProfileStoreClient:
        return ProfileStoreClient(
            base_url=settings.api_base_url,
            token=token,
            timeout_seconds=settings.api_timeout_seconds,
        )

    return _make


class SessionManager:
    """Owns the current session handle.

    Identity changes are explicit: `open()` tears down the previous handle and
    builds a new one, then tells every observer. There is no process-wide
    "current game" outside of this object.
    """

    def __init__(
        self,
        *,
        settings: GameSettings | None = None,
        client_factory: ClientFactory | None = None,
        countdown_factory: CountdownFactory | None = None,
        rng_factory: Callable[[], random.Random] | None = None,
    ) -> None:
        self.settings = settings or GameSettings()
        self._client_factory = client_factory or _default_client_factory(self.settings)
        self._countdown_factory = countdown_factory
        self._rng_factory = rng_factory or random.Random
        self._observers: list[SessionObserver] = []
        self._current: SessionHandle | None = None

    @property
    def current(self) -> SessionHandle | None:
        return self._current

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        if observer not in self._observers:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def require_current(self) -> SessionHandle:
        if self._current is None:
            raise LookupError("No active session")
        return self._current

    # ---- lifecycle ----

    async def open(self, identity: Identity, *, cache: ProfileIdCache | None = None) -> SessionHandle:
        if not identity.is_authenticated:
            raise AuthenticationRequired("Authentication required. Please login or register first.")

        await self.close()

        client = self._client_factory(identity.token)
        profile_id = await resolve_profile_id(identity=identity, client=client, cache=cache)
        if profile_id is None:
            logger.info("No profile id for %s; stats sync disabled for this session", identity.username)

        session = GameSession(
            size=self.settings.grid_size,
            time_limit_seconds=self.settings.time_limit_seconds,
            winning_tile_value=self.settings.default_winning_tile,
            rng=self._rng_factory(),
            countdown_factory=self._countdown_factory,
        )
        tiles = await load_tile_table(client)
        if tiles:
            session.configure_winning_tile(winning_tile_value(tiles.values()))

        handle = SessionHandle(
            session_id=uuid4().hex,
            identity=identity.with_profile_id(profile_id),
            session=session,
            sync=self._new_synchronizer(client, profile_id),
            client=client,
        )
        session.add_terminal_listener(lambda event: self._on_terminal(handle, event))
        session.add_change_listener(lambda view: self._on_change(handle, view))
        self._current = handle

        handle.spawn(self._seed_best_score(handle))

        logger.info("Session %s opened for %s (winning tile %s)", handle.session_id, identity.username, session.winning_tile_value)
        for observer in list(self._observers):
            observer.session_replaced(handle)
        return handle

    async def change_identity(self, identity: Identity, *, cache: ProfileIdCache | None = None) -> SessionHandle | None:
        """Recreate the session if the player changed. Unauthenticated identities just close it."""

        current = self._current
        if not identity.is_authenticated:
            await self.close()
            return None
        if current is not None and current.identity.username == identity.username:
            return current
        return await self.open(identity, cache=cache)

    async def close(self) -> None:
        handle, self._current = self._current, None
        if handle is None:
            return

        handle.stop_autosave()
        handle.session.close()
        await handle.wait_idle()
        await handle.client.aclose()

        logger.info("Session %s closed", handle.session_id)
        for observer in list(self._observers):
            observer.session_closed(handle)

    # ---- player input ----

    def apply_move(self, direction: str) -> bool:
        return self.require_current().session.apply_move(direction)

    def reset(self) -> SessionHandle:
        """Start a new game on the current handle; stats tracking starts over with it."""

        handle = self.require_current()
        handle.stop_autosave()
        handle.sync = self._new_synchronizer(handle.client, handle.sync.profile_id)
        handle.session.reset()
        return handle

    def flush_on_exit(self) -> bool:
        """Blocking last-chance progress write before the process goes away."""

        handle = self._current
        if handle is None:
            return False
        return handle.sync.flush_on_exit(handle.session.view())

    # ---- internals ----

    def _new_synchronizer(self, client: ProfileStoreClient, profile_id: str | None) -> StatsSynchronizer:
        return StatsSynchronizer(client=client, profile_id=profile_id, settings=self.settings.sync)

    async def _seed_best_score(self, handle: SessionHandle) -> None:
        snapshot = await handle.sync.load_profile()
        if snapshot is not None:
            handle.session.seed_best_score(snapshot.highest_score)

    def _on_change(self, handle: SessionHandle, view: SessionView) -> None:
        if view.status == SessionStatus.active and handle.autosave_task is None and handle.sync.enabled:
            handle.autosave_task = handle.spawn(handle.sync.run_periodic(handle.session.view))
        elif view.status != SessionStatus.active:
            handle.stop_autosave()

        for observer in list(self._observers):
            observer.session_changed(handle, view)

    def _on_terminal(self, handle: SessionHandle, event: TerminalEvent) -> None:
        handle.stop_autosave()
        handle.spawn(handle.sync.finalize_sync(event))
