from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from bakery2048.api.models import SessionStatus, SessionView
from bakery2048.config import SyncSettings
from bakery2048.core.events import TerminalEvent
from bakery2048.stats.client import ProfileStoreAuthError, ProfileStoreClient, ProfileStoreError
from bakery2048.stats.merge import ProgressDelta, merge_final, merge_progress
from bakery2048.stats.models import StatsSnapshot

logger = logging.getLogger(__name__)


class StatsSynchronizer:
    """Reconciles one session's progress with the remote profile store.

    Every write re-fetches the remote snapshot first and adds only what this
    session has not written yet (elapsed seconds and moves since the last
    successful write). Store failures are logged and never raised.

    `finalize_sync` runs at most once; after it, periodic and exit syncs are no-ops.
    Without a profile id every operation is skipped, and a 401 from the store
    switches syncing off for the rest of the session (the player has to sign in again).
    """

    def __init__(
        self,
        *,
        client: ProfileStoreClient,
        profile_id: str | None,
        settings: SyncSettings | None = None,
    ) -> None:
        self._client = client
        self.profile_id = profile_id
        self.settings = settings or SyncSettings()

        self._finalized = False
        self._auth_rejected = False
        self._synced_seconds = 0
        self._synced_moves = 0

    @property
    def enabled(self) -> bool:
        return bool(self.profile_id) and not self._auth_rejected

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _delta(self, *, elapsed_seconds: int, moves: int, highest_tile: int) -> ProgressDelta:
        return ProgressDelta(
            added_seconds=max(elapsed_seconds - self._synced_seconds, 0),
            added_moves=max(moves - self._synced_moves, 0),
            highest_tile=highest_tile,
        )

    def _reserve(self, delta: ProgressDelta) -> None:
        # Claimed before the network round trip so an overlapping final sync doesn't count it again.
        self._synced_seconds += delta.added_seconds
        self._synced_moves += delta.added_moves

    def _release(self, delta: ProgressDelta) -> None:
        self._synced_seconds -= delta.added_seconds
        self._synced_moves -= delta.added_moves

    def _note_failure(self, e: ProfileStoreError) -> None:
        if isinstance(e, ProfileStoreAuthError) and not self._auth_rejected:
            self._auth_rejected = True
            logger.warning("Profile store rejected the credentials for %s; stats sync off until sign-in", self.profile_id)

    async def load_profile(self) -> StatsSnapshot | None:
        if not self.enabled:
            return None
        assert self.profile_id is not None
        try:
            return await self._client.fetch_profile(self.profile_id)
        except ProfileStoreError as e:
            self._note_failure(e)
            logger.warning("Failed to load player profile %s: %s", self.profile_id, e)
            return None

    async def periodic_sync(self, view: SessionView) -> bool:
        """Write accumulated progress. Returns True if a write succeeded."""

        if not self.enabled or self._finalized:
            return False
        if view.status != SessionStatus.active:
            return False
        if view.elapsed_seconds < self.settings.autosave_min_seconds:
            return False
        assert self.profile_id is not None

        delta = self._delta(elapsed_seconds=view.elapsed_seconds, moves=view.moves, highest_tile=view.highest_tile)
        self._reserve(delta)
        written = False
        try:
            remote = await self._client.fetch_profile(self.profile_id)
            await self._client.update_profile(self.profile_id, merge_progress(remote, delta))
            written = True
        except ProfileStoreError as e:
            self._note_failure(e)
            logger.warning("Auto-save failed for %s: %s", self.profile_id, e)
            return False
        finally:
            # Also covers cancellation mid-request: unwritten progress goes back to the pending delta.
            if not written:
                self._release(delta)

        logger.info("Progress auto-saved for %s (+%ss, +%s moves)", self.profile_id, delta.added_seconds, delta.added_moves)
        return True

    async def finalize_sync(self, event: TerminalEvent) -> bool:
        """Record a finished game. Returns True if the write succeeded."""

        if self._finalized:
            logger.debug("Final sync already done for this session; ignoring %s", event.outcome.value)
            return False
        self._finalized = True

        if not self.enabled:
            logger.debug("No profile id; skipping final sync")
            return False
        assert self.profile_id is not None

        delta = self._delta(elapsed_seconds=event.elapsed_seconds, moves=event.moves, highest_tile=event.highest_tile)
        self._reserve(delta)
        try:
            remote = await self._client.fetch_profile(self.profile_id)
            await self._client.update_profile(self.profile_id, merge_final(remote, event, delta))
        except ProfileStoreError as e:
            self._note_failure(e)
            logger.error("Failed to save game result for %s: %s", self.profile_id, e)
            return False

        logger.info("Game result saved for %s: %s score=%s", self.profile_id, event.outcome.value, event.final_score)
        return True

    def flush_on_exit(self, view: SessionView) -> bool:
        """Blocking progress write for process/tab teardown.

        This is the only blocking network call; don't use it from the event loop's normal path.
        """

        if not self.enabled or self._finalized:
            return False
        if view.elapsed_seconds < self.settings.exit_flush_min_seconds:
            return False
        assert self.profile_id is not None

        delta = self._delta(elapsed_seconds=view.elapsed_seconds, moves=view.moves, highest_tile=view.highest_tile)
        self._reserve(delta)
        try:
            remote = self._client.fetch_profile_blocking(self.profile_id)
            self._client.update_profile_blocking(self.profile_id, merge_progress(remote, delta))
        except ProfileStoreError as e:
            self._release(delta)
            self._note_failure(e)
            logger.error("Failed to save progress on exit for %s: %s", self.profile_id, e)
            return False

        logger.info("Progress saved on exit for %s", self.profile_id)
        return True

    async def run_periodic(self, get_view: Callable[[], SessionView], *, interval_seconds: float | None = None) -> None:
        """Autosave loop; returns once the session has been finalized. Cancel it to stop earlier."""

        interval = self.settings.autosave_interval_seconds if interval_seconds is None else interval_seconds
        while not self._finalized:
            await asyncio.sleep(interval)
            if self._finalized:
                return
            await self.periodic_sync(get_view())
