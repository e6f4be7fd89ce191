# auctionmaster/schemas/claim.py
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auctionmaster.core.clock import ensure_utc, utc_now
from auctionmaster.schemas.item import ItemPayload


class ClaimReason(str, Enum):
    AUCTION_WON = "AUCTION_WON"  # Won an auction
    OUTBID_REFUND = "OUTBID_REFUND"  # Got outbid, refund the bid
    AUCTION_SOLD = "AUCTION_SOLD"  # Auction sold, get money
    AUCTION_UNSOLD = "AUCTION_UNSOLD"  # Auction expired without bids, return item
    AUCTION_CANCELLED = "AUCTION_CANCELLED"  # Auction cancelled, return item/money


class Claim(BaseModel):
    """Money and/or items owed to a player, kept until delivered"""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    player_id: UUID
    player_name: str
    items: tuple[ItemPayload, ...] = ()
    money: float = Field(0.0, ge=0, allow_inf_nan=False)
    reason: ClaimReason
    timestamp: datetime = Field(default_factory=utc_now)
    auction_id: UUID | None = Field(
        None, description="Auction whose settlement produced this claim, if known"
    )

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def has_items(self) -> bool:
        return len(self.items) > 0

    @property
    def has_money(self) -> bool:
        return self.money > 0
