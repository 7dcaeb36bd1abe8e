from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from core.errors import ArenaError

if TYPE_CHECKING:
    from core.lifecycle import BattleLifecycle

log = logging.getLogger("riparena.poller")


class OpenBattlePoller:
    """
    Re-runs ``list_open()`` on a fixed interval as a cancellable task.

    A cycle is skipped while the lifecycle has a mutating action in flight,
    so a battle this session just settled is not re-listed as open from a
    read that raced the inclusion. After ``stop()`` returns no further read
    is issued.
    """

    def __init__(self, lifecycle: BattleLifecycle, interval: float = 10.0) -> None:
        self._lifecycle = lifecycle
        self._interval = interval
        self._task: asyncio.Task | None = None
        self.cycles = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="OpenBattlePoller")
        log.info("POLL  started (every %.1fs)", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        log.info("POLL  stopped after %d cycle(s), %d skipped", self.cycles, self.skipped)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.poll_once()

    async def poll_once(self) -> None:
        if self._lifecycle.busy:
            self.skipped += 1
            log.debug("POLL  skipped, action in flight")
            return
        self.cycles += 1
        try:
            battles = await self._lifecycle.list_open()
            log.debug("POLL  %d open battle(s)", len(battles))
        except ArenaError as exc:
            log.error("POLL  open battle refresh failed: %s", exc)
