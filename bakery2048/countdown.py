from __future__ import annotations

import asyncio
from collections.abc import Callable


class Countdown:
    """Calls `on_tick` once per interval on the running event loop until cancelled.

    Must be started from inside a running loop. `cancel()` is idempotent; no tick fires after it returns.
    """

    def __init__(self, *, on_tick: Callable[[], None], interval_seconds: float = 1.0) -> None:
        self._on_tick = on_tick
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        me = asyncio.current_task()
        while True:
            await asyncio.sleep(self._interval)
            # A cancel() issued during the sleep's wake-up must win over the tick.
            if self._task is not me:
                return
            self._on_tick()


def format_time(seconds: int) -> str:
    """Render remaining time as `M:SS` (minutes are not zero-padded)."""

    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins}:{secs:02d}"
