# auctionmaster/schemas/filter.py
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from auctionmaster.schemas.auction import AuctionCategory, AuctionStatus


class SortOrder(str, Enum):
    NEWEST = "NEWEST"
    OLDEST = "OLDEST"
    PRICE_LOW = "PRICE_LOW"
    PRICE_HIGH = "PRICE_HIGH"
    ENDING_SOON = "ENDING_SOON"
    MOST_BIDS = "MOST_BIDS"


class AuctionFilter(BaseModel):
    """Filter criteria for searching auctions"""

    category: AuctionCategory | None = None
    min_price: float | None = Field(None, ge=0)
    max_price: float | None = Field(None, ge=0)
    seller_id: UUID | None = None
    bidder_id: UUID | None = None
    status: AuctionStatus | None = None
    search_text: str | None = Field(None, description="Matched against the item data")
    sort_order: SortOrder = SortOrder.NEWEST
    limit: int | None = Field(45, ge=1, description="None means no limit")
    offset: int = Field(0, ge=0)

    @classmethod
    def for_seller(cls, seller_id: UUID) -> "AuctionFilter":
        return cls(seller_id=seller_id)

    @classmethod
    def for_bidder(cls, bidder_id: UUID) -> "AuctionFilter":
        """Auctions a player has bid on"""
        return cls(bidder_id=bidder_id)

    @classmethod
    def active_only(cls) -> "AuctionFilter":
        return cls(status=AuctionStatus.ACTIVE)
