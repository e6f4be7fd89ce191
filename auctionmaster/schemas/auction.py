# auctionmaster/schemas/auction.py
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from auctionmaster.core.clock import ensure_utc, utc_now
from auctionmaster.core.exceptions import IllegalTransition
from auctionmaster.schemas.item import ItemPayload


class AuctionCategory(str, Enum):
    WEAPONS = "WEAPONS"
    ARMOR = "ARMOR"
    TOOLS = "TOOLS"
    BLOCKS = "BLOCKS"
    FOOD = "FOOD"
    POTIONS = "POTIONS"
    ENCHANTED = "ENCHANTED"
    RARE = "RARE"
    OTHER = "OTHER"


class AuctionStatus(str, Enum):
    """
    Auction state machine.

    ACTIVE is the only state that accepts bids. SOLD, EXPIRED and CANCELLED
    are settled states that only move on to CLAIMED once every claim they
    produced has been delivered. CLAIMED is final.
    """

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SOLD = "SOLD"
    CANCELLED = "CANCELLED"
    CLAIMED = "CLAIMED"

    @property
    def accepts_bids(self) -> bool:
        return self is AuctionStatus.ACTIVE

    @property
    def is_settled(self) -> bool:
        return self in _SETTLED

    def can_transition_to(self, target: "AuctionStatus") -> bool:
        return target in _TRANSITIONS[self]


_SETTLED = frozenset({AuctionStatus.SOLD, AuctionStatus.EXPIRED, AuctionStatus.CANCELLED})

_TRANSITIONS: dict[AuctionStatus, frozenset[AuctionStatus]] = {
    AuctionStatus.ACTIVE: _SETTLED,
    AuctionStatus.SOLD: frozenset({AuctionStatus.CLAIMED}),
    AuctionStatus.EXPIRED: frozenset({AuctionStatus.CLAIMED}),
    AuctionStatus.CANCELLED: frozenset({AuctionStatus.CLAIMED}),
    AuctionStatus.CLAIMED: frozenset(),
}


class Bid(BaseModel):
    """An accepted bid; never updated once recorded"""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    auction_id: UUID
    bidder_id: UUID
    bidder_name: str
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    timestamp: datetime = Field(default_factory=utc_now)

    @field_validator("timestamp")
    @classmethod
    def _utc_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class Auction(BaseModel):
    """
    An item listed for timed sale.

    Instances are immutable; every change produces a copy through
    ``with_bid``, ``with_status`` or ``with_claimed``.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)

    # Seller information
    seller_id: UUID
    seller_name: str

    item: ItemPayload

    # Pricing
    start_price: float = Field(..., gt=0, allow_inf_nan=False)
    current_bid: float = Field(..., allow_inf_nan=False)
    buy_now_price: float | None = Field(default=None, allow_inf_nan=False)

    # Bidding
    current_bidder_id: UUID | None = None
    current_bidder_name: str | None = None
    bid_history: tuple[Bid, ...] = ()

    # Timing
    created_at: datetime
    expires_at: datetime
    duration: timedelta

    status: AuctionStatus = AuctionStatus.ACTIVE

    category: AuctionCategory = AuctionCategory.OTHER
    claimed: bool = False

    @field_validator("created_at", "expires_at")
    @classmethod
    def _utc_times(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Auction":
        if self.current_bid < self.start_price:
            raise ValueError("current_bid must not be lower than start_price")
        if self.buy_now_price is not None and not self.buy_now_price > self.start_price:
            raise ValueError("buy_now_price must be higher than start_price")
        if self.status is AuctionStatus.CLAIMED and not self.claimed:
            raise ValueError("a CLAIMED auction must have claimed=True")
        return self

    @classmethod
    def open(
        cls,
        seller_id: UUID,
        seller_name: str,
        item: ItemPayload,
        start_price: float,
        duration: timedelta,
        buy_now_price: float | None = None,
        category: AuctionCategory = AuctionCategory.OTHER,
        now: datetime | None = None,
    ) -> "Auction":
        """Build a fresh ACTIVE auction starting now"""
        created_at = now or utc_now()
        return cls(
            seller_id=seller_id,
            seller_name=seller_name,
            item=item,
            start_price=start_price,
            current_bid=start_price,
            buy_now_price=buy_now_price,
            created_at=created_at,
            expires_at=created_at + duration,
            duration=duration,
            category=category,
        )

    @property
    def bid_count(self) -> int:
        return len(self.bid_history)

    @property
    def has_bidder(self) -> bool:
        return self.current_bidder_id is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def is_active(self, now: datetime | None = None) -> bool:
        """Still accepting bids"""
        return self.status.accepts_bids and not self.is_expired(now)

    def time_remaining(self, now: datetime | None = None) -> timedelta:
        return max(timedelta(0), self.expires_at - (now or utc_now()))

    def can_player_bid(self, player_id: UUID, now: datetime | None = None) -> bool:
        return self.is_active(now) and player_id != self.seller_id

    def minimum_bid(self, min_increment: float) -> float:
        return self.current_bid + min_increment

    def with_bid(self, bid: Bid) -> "Auction":
        """Copy with ``bid`` as the new leading bid"""
        if not self.status.accepts_bids:
            raise IllegalTransition(f"Auction {self.id} is {self.status.value}, bids are closed")
        if bid.auction_id != self.id:
            raise ValueError(f"Bid {bid.id} belongs to auction {bid.auction_id}")
        if bid.amount <= self.current_bid:
            raise ValueError(
                f"Bid {bid.amount:.2f} does not exceed current bid {self.current_bid:.2f}"
            )
        return self.model_copy(
            update={
                "current_bid": bid.amount,
                "current_bidder_id": bid.bidder_id,
                "current_bidder_name": bid.bidder_name,
                "bid_history": self.bid_history + (bid,),
            }
        )

    def with_status(self, new_status: AuctionStatus) -> "Auction":
        if new_status is AuctionStatus.CLAIMED:
            return self.with_claimed()
        if not self.status.can_transition_to(new_status):
            raise IllegalTransition(
                f"Auction {self.id} cannot go from {self.status.value} to {new_status.value}"
            )
        return self.model_copy(update={"status": new_status})

    def with_claimed(self) -> "Auction":
        if not self.status.can_transition_to(AuctionStatus.CLAIMED):
            raise IllegalTransition(
                f"Auction {self.id} cannot be claimed while {self.status.value}"
            )
        return self.model_copy(update={"status": AuctionStatus.CLAIMED, "claimed": True})
