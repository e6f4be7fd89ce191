# auctionmaster/schemas/result.py
"""
Tagged success/failure results.

Every processing call of the engine returns one of these instead of raising,
so the caller decides whether to retry or to show the failure.
"""

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

from auctionmaster.schemas.auction import Auction


class FailureCode(str, Enum):
    # Business-rule violations
    ITEM_BLACKLISTED = "ITEM_BLACKLISTED"
    MAX_AUCTIONS_REACHED = "MAX_AUCTIONS_REACHED"
    PRICE_TOO_LOW = "PRICE_TOO_LOW"
    PRICE_TOO_HIGH = "PRICE_TOO_HIGH"
    INVALID_BUY_NOW_PRICE = "INVALID_BUY_NOW_PRICE"
    DURATION_TOO_SHORT = "DURATION_TOO_SHORT"
    DURATION_TOO_LONG = "DURATION_TOO_LONG"
    CANNOT_BID_OWN = "CANNOT_BID_OWN"
    AUCTION_NOT_ACTIVE = "AUCTION_NOT_ACTIVE"
    AUCTION_EXPIRED = "AUCTION_EXPIRED"
    BID_TOO_LOW = "BID_TOO_LOW"
    NO_BUY_NOW = "NO_BUY_NOW"
    CANNOT_BUY_OWN = "CANNOT_BUY_OWN"
    CANCEL_NOT_ALLOWED = "CANCEL_NOT_ALLOWED"
    NOT_SELLER = "NOT_SELLER"
    CLAIMS_OUTSTANDING = "CLAIMS_OUTSTANDING"

    NOT_FOUND = "NOT_FOUND"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    ECONOMY_UNAVAILABLE = "ECONOMY_UNAVAILABLE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    INVENTORY_FULL = "INVENTORY_FULL"

    @property
    def kind(self) -> str:
        return _KINDS.get(self, "validation")


_KINDS = {
    FailureCode.NOT_FOUND: "not_found",
    FailureCode.PERSISTENCE_ERROR: "persistence",
    FailureCode.ECONOMY_UNAVAILABLE: "economy_unavailable",
    FailureCode.INSUFFICIENT_FUNDS: "insufficient_funds",
    FailureCode.INVENTORY_FULL: "delivery",
}


class Success(BaseModel):
    ok: Literal[True] = True
    message: str = ""
    auction: Auction | None = None


class Failure(BaseModel):
    ok: Literal[False] = False
    code: FailureCode
    reason: str = Field(..., description="Human-readable rejection message")

    @property
    def kind(self) -> str:
        return self.code.kind

    @property
    def retryable(self) -> bool:
        """Transient failures the caller may simply try again"""
        return self.code in (FailureCode.PERSISTENCE_ERROR, FailureCode.ECONOMY_UNAVAILABLE)


Result = Union[Success, Failure]
