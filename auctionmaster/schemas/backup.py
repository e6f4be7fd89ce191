# auctionmaster/schemas/backup.py
from datetime import datetime

from pydantic import BaseModel, Field

from auctionmaster.core.clock import utc_now
from auctionmaster.schemas.auction import Auction, Bid
from auctionmaster.schemas.claim import Claim

BACKUP_FORMAT_VERSION = "1.0"


class BackupData(BaseModel):
    """One snapshot of every auction, bid and pending claim"""

    timestamp: datetime = Field(default_factory=utc_now)
    version: str = BACKUP_FORMAT_VERSION
    auctions: list[Auction] = Field(default_factory=list)
    bids: list[Bid] = Field(default_factory=list)
    claims: list[Claim] = Field(default_factory=list)


class RestoreReport(BaseModel):
    auctions_restored: int = 0
    auctions_skipped: int = 0
    claims_restored: int = 0
    claims_skipped: int = 0
