"""Shared fixtures: SQLite storage, fake economy/inventory and a frozen clock."""

from datetime import timedelta
from uuid import UUID, uuid4

import pytest

from auctionmaster.core.config import Settings
from auctionmaster.core.database import Database
from auctionmaster.core.locks import KeyedLock
from auctionmaster.services.auction_cache import InMemoryAuctionCache
from auctionmaster.services.auction_service import AuctionService
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.backup_service import JsonBackupService
from auctionmaster.services.claim_delivery import ClaimDeliveryService
from auctionmaster.services.claims_ledger import ClaimsLedger
from tests.fakes import FakeEconomy, FakeReceiver, FrozenClock, make_item


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def config() -> Settings:
    return Settings(
        _env_file=None,
        LISTING_FEE=0.0,
        LISTING_FEE_PERCENTAGE=0.0,
        CANCEL_FEE_PERCENTAGE=0.0,
        MIN_BID_INCREMENT=5.0,
        SETTLEMENT_RETRY_ATTEMPTS=2,
        SETTLEMENT_RETRY_DELAY_SECONDS=0.0,
        BACKUP_KEEP_COUNT=3,
    )


@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'auctions.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def cache() -> InMemoryAuctionCache:
    return InMemoryAuctionCache()


@pytest.fixture
def store(database, cache, clock) -> AuctionStore:
    return AuctionStore(database, cache, clock=clock)


@pytest.fixture
def ledger(database) -> ClaimsLedger:
    return ClaimsLedger(database)


@pytest.fixture
def economy() -> FakeEconomy:
    return FakeEconomy()


@pytest.fixture
def receiver() -> FakeReceiver:
    return FakeReceiver()


@pytest.fixture
def service(store, ledger, economy, config, clock) -> AuctionService:
    return AuctionService(store, ledger, economy, config=config, locks=KeyedLock(), clock=clock)


@pytest.fixture
def delivery(ledger, economy, receiver, service) -> ClaimDeliveryService:
    return ClaimDeliveryService(ledger, economy, receiver, service=service)


@pytest.fixture
def backups(store, ledger, clock) -> JsonBackupService:
    return JsonBackupService(store, ledger, keep_count=3, clock=clock)


@pytest.fixture
def seller(economy) -> UUID:
    player = uuid4()
    economy.balances[player] = 1000.0
    return player


@pytest.fixture
def alice(economy) -> UUID:
    player = uuid4()
    economy.balances[player] = 1000.0
    return player


@pytest.fixture
def bob(economy) -> UUID:
    player = uuid4()
    economy.balances[player] = 1000.0
    return player


@pytest.fixture
def open_auction(service, seller):
    """Factory creating an ACTIVE auction through the service"""

    async def _open(start_price: float = 10.0, buy_now_price: float | None = None, **kwargs):
        result = await service.create_auction(
            seller_id=seller,
            seller_name="seller",
            item=kwargs.pop("item", make_item()),
            start_price=start_price,
            duration=kwargs.pop("duration", timedelta(hours=1)),
            buy_now_price=buy_now_price,
            **kwargs,
        )
        assert result.ok, result
        return result.auction

    return _open
