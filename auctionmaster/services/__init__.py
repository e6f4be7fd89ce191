# Service layer
from auctionmaster.services.auction_cache import (
    AuctionCache,
    InMemoryAuctionCache,
    NullAuctionCache,
    RedisAuctionCache,
    build_cache,
)
from auctionmaster.services.auction_service import AuctionService
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.backup_service import JsonBackupService
from auctionmaster.services.claim_delivery import ClaimDeliveryService
from auctionmaster.services.claims_ledger import ClaimsLedger
from auctionmaster.services.economy import EconomyPort, ItemReceiver

__all__ = [
    "AuctionCache",
    "InMemoryAuctionCache",
    "NullAuctionCache",
    "RedisAuctionCache",
    "build_cache",
    "AuctionService",
    "AuctionStore",
    "JsonBackupService",
    "ClaimDeliveryService",
    "ClaimsLedger",
    "EconomyPort",
    "ItemReceiver",
]
