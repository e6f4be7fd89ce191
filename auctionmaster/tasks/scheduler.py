# auctionmaster/tasks/scheduler.py
"""
Periodic background loops of the engine.

Four loops run as asyncio tasks: expiration sweep, cache refresh, backup and
cleanup. A failing iteration is logged and the loop carries on.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from pathlib import Path

from auctionmaster.core.config import Settings, settings
from auctionmaster.schemas.report import SweepReport
from auctionmaster.services.auction_service import AuctionService
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.backup_service import JsonBackupService
from auctionmaster.tasks.backup import run_backup
from auctionmaster.tasks.cache_refresh import run_cache_refresh
from auctionmaster.tasks.cleanup import run_cleanup
from auctionmaster.tasks.expiration import run_expiration_sweep

logger = logging.getLogger(__name__)


class AuctionScheduler:
    def __init__(
        self,
        store: AuctionStore,
        service: AuctionService,
        backups: JsonBackupService,
        config: Settings = settings,
    ):
        self.store = store
        self.service = service
        self.backups = backups
        self.config = config
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        """Start all loops; expiration runs right away, the others after one interval"""
        if self.running:
            return
        self._stop = asyncio.Event()
        cfg = self.config
        self._tasks = [
            asyncio.create_task(
                self._loop(
                    "expiration",
                    self.trigger_expiration_check,
                    timedelta(seconds=cfg.EXPIRATION_INTERVAL_SECONDS),
                    run_first=True,
                )
            ),
            asyncio.create_task(
                self._loop(
                    "cache-refresh",
                    self.trigger_cache_refresh,
                    timedelta(seconds=cfg.CACHE_REFRESH_INTERVAL_SECONDS),
                )
            ),
            asyncio.create_task(
                self._loop(
                    "backup",
                    self.trigger_backup,
                    timedelta(hours=cfg.BACKUP_INTERVAL_HOURS),
                )
            ),
            asyncio.create_task(
                self._loop(
                    "cleanup",
                    self.trigger_cleanup,
                    timedelta(hours=cfg.CLEANUP_INTERVAL_HOURS),
                )
            ),
        ]
        logger.info("Auction scheduler started (%d loops)", len(self._tasks))

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop all loops.

        An iteration that is already running is allowed to finish; after
        ``timeout`` seconds whatever is left gets cancelled.
        """
        if not self._tasks:
            return
        self._stop.set()
        _, pending = await asyncio.wait(self._tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Cancelled %d scheduler loop(s) after timeout", len(pending))
        self._tasks = []
        logger.info("Auction scheduler stopped")

    async def _loop(
        self,
        name: str,
        body: Callable[[], Awaitable[object]],
        interval: timedelta,
        run_first: bool = False,
    ) -> None:
        seconds = interval.total_seconds()
        if not run_first and await self._wait(seconds):
            return

        while not self._stop.is_set():
            try:
                await body()
            except Exception:
                logger.exception("Error in %s loop", name)
            if await self._wait(seconds):
                return

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds``; True when the scheduler was stopped meanwhile"""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    # ========== MANUAL TRIGGERS ==========

    async def trigger_expiration_check(self) -> SweepReport:
        return await run_expiration_sweep(self.store, self.service)

    async def trigger_cache_refresh(self) -> int:
        return await run_cache_refresh(self.store)

    async def trigger_backup(self) -> Path:
        return await run_backup(self.backups, self.config.BACKUP_DIR)

    async def trigger_cleanup(self) -> int:
        return await run_cleanup(self.store, self.config.cleanup_threshold)
