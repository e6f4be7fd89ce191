# auctionmaster/main.py
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from auctionmaster.core.clock import Clock, utc_now
from auctionmaster.core.config import Settings, settings
from auctionmaster.core.database import Database
from auctionmaster.core.locks import KeyedLock
from auctionmaster.core.redis import RedisClient
from auctionmaster.services.auction_cache import build_cache
from auctionmaster.services.auction_service import AuctionService
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.backup_service import JsonBackupService
from auctionmaster.services.claim_delivery import ClaimDeliveryService
from auctionmaster.services.claims_ledger import ClaimsLedger
from auctionmaster.services.economy import EconomyPort, ItemReceiver
from auctionmaster.tasks.scheduler import AuctionScheduler

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    """Configure logging for a host process that has not done so itself"""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class AuctionEngine:
    """
    Wires the store, ledger, services and scheduler together.

    The host application supplies the economy and the item receiver, then
    either uses ``async with engine.lifespan()`` or calls ``start``/``shutdown``.
    """

    def __init__(
        self,
        economy: EconomyPort,
        receiver: ItemReceiver,
        config: Settings = settings,
        database: Database | None = None,
        clock: Clock = utc_now,
    ):
        self.config = config
        self.database = database or Database(config.DATABASE_URL)
        self.redis = RedisClient(config.REDIS_URL) if self._uses_redis else None
        self.locks = KeyedLock()

        # The Redis cache is attached once the client is connected in start()
        backend = "none" if self._uses_redis else config.AUCTION_CACHE_BACKEND
        self.store = AuctionStore(self.database, build_cache(backend), clock=clock)
        self.ledger = ClaimsLedger(self.database)
        self.service = AuctionService(
            self.store, self.ledger, economy, config=config, locks=self.locks, clock=clock
        )
        self.delivery = ClaimDeliveryService(
            self.ledger, economy, receiver, service=self.service, locks=self.locks
        )
        self.backups = JsonBackupService(
            self.store, self.ledger, keep_count=config.BACKUP_KEEP_COUNT, clock=clock
        )
        self.scheduler = AuctionScheduler(self.store, self.service, self.backups, config=config)

    @property
    def _uses_redis(self) -> bool:
        return self.config.AUCTION_CACHE_BACKEND.lower() == "redis"

    async def start(self, run_scheduler: bool = True) -> None:
        """Create tables, connect the cache, load active auctions and start the loops"""
        if self.redis is not None:
            await self.redis.connect()
            if await self.redis.ping():
                logger.info("Redis connected")
            else:
                logger.warning("Redis not reachable, cache updates will be skipped")
            self.store.cache = build_cache(
                "redis", self.redis.get_client(), key=self.config.AUCTION_CACHE_KEY
            )

        await self.database.create_all()
        count = await self.store.reload_cache()
        logger.info("Loaded %d active auction(s) into the cache", count)

        if run_scheduler:
            self.scheduler.start()
        logger.info("%s started", self.config.APP_NAME)

    async def shutdown(self, timeout: float | None = 30) -> None:
        await self.scheduler.stop(timeout=timeout)
        if self.redis is not None:
            await self.redis.disconnect()
            logger.info("Redis disconnected")
        await self.database.dispose()
        logger.info("%s shutdown", self.config.APP_NAME)

    @asynccontextmanager
    async def lifespan(self, run_scheduler: bool = True) -> AsyncIterator["AuctionEngine"]:
        await self.start(run_scheduler=run_scheduler)
        try:
            yield self
        finally:
            await self.shutdown()
