"""
SQLAlchemy ORM Models

All database models unified export point
"""

from auctionmaster.models.auction import AuctionRecord
from auctionmaster.models.bid import BidRecord
from auctionmaster.models.claim import ClaimRecord

__all__ = [
    "AuctionRecord",
    "BidRecord",
    "ClaimRecord",
]
