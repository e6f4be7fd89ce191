"""
AuctionMaster: auction lifecycle and settlement engine.

Auctions move ACTIVE -> SOLD | EXPIRED | CANCELLED -> CLAIMED; every transfer
of money or items between players goes through the claims ledger.
"""

from auctionmaster.core.config import Settings, settings
from auctionmaster.main import AuctionEngine, configure_logging
from auctionmaster.schemas import (
    Auction,
    AuctionCategory,
    AuctionFilter,
    AuctionStatus,
    Bid,
    Claim,
    ClaimReason,
    Failure,
    FailureCode,
    ItemPayload,
    Result,
    SortOrder,
    Success,
)

__version__ = "1.0.0"

__all__ = [
    "AuctionEngine",
    "configure_logging",
    "Settings",
    "settings",
    "Auction",
    "AuctionCategory",
    "AuctionFilter",
    "AuctionStatus",
    "Bid",
    "Claim",
    "ClaimReason",
    "Failure",
    "FailureCode",
    "ItemPayload",
    "Result",
    "SortOrder",
    "Success",
]
