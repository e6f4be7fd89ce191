"""
Pydantic domain models

All schemas unified export point
"""

from auctionmaster.schemas.auction import Auction, AuctionCategory, AuctionStatus, Bid
from auctionmaster.schemas.backup import BackupData, RestoreReport
from auctionmaster.schemas.claim import Claim, ClaimReason
from auctionmaster.schemas.filter import AuctionFilter, SortOrder
from auctionmaster.schemas.item import ItemPayload
from auctionmaster.schemas.report import DrainReport, FailedClaim, SweepReport
from auctionmaster.schemas.result import Failure, FailureCode, Result, Success

__all__ = [
    "Auction",
    "AuctionCategory",
    "AuctionStatus",
    "Bid",
    "BackupData",
    "RestoreReport",
    "Claim",
    "ClaimReason",
    "AuctionFilter",
    "SortOrder",
    "ItemPayload",
    "DrainReport",
    "FailedClaim",
    "SweepReport",
    "Failure",
    "FailureCode",
    "Result",
    "Success",
]
