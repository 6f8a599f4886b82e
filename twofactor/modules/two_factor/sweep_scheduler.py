from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from twofactor.core.config.settings import get_settings
from twofactor.modules.two_factor.pending import PendingSetupStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingSetupSweepScheduler:
    store: PendingSetupStore
    interval_seconds: int
    enabled: bool
    _task: asyncio.Task[None] | None = None
    _stop: asyncio.Event = field(default_factory=asyncio.Event)

    async def start(self) -> None:
        if not self.enabled:
            return
        if self._task and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                self.sweep_once()

    def sweep_once(self) -> int:
        try:
            purged = self.store.purge_expired()
        except Exception:
            logger.exception("Pending setup sweep failed")
            return 0
        if purged:
            logger.info("Pending setup sweep purged=%s remaining=%s", purged, len(self.store))
        return purged


def build_pending_setup_sweep_scheduler(store: PendingSetupStore) -> PendingSetupSweepScheduler:
    settings = get_settings()
    return PendingSetupSweepScheduler(
        store=store,
        interval_seconds=settings.pending_setup_sweep_interval_seconds,
        enabled=settings.pending_setup_sweep_enabled,
    )
