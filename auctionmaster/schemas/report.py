# auctionmaster/schemas/report.py
from uuid import UUID

from pydantic import BaseModel, Field

from auctionmaster.schemas.result import FailureCode


class FailedClaim(BaseModel):
    claim_id: UUID
    code: FailureCode
    reason: str


class DrainReport(BaseModel):
    """Outcome of delivering every pending claim of one player"""

    player_id: UUID
    delivered: list[UUID] = Field(default_factory=list)
    failed: list[FailedClaim] = Field(default_factory=list)
    money_delivered: float = 0.0
    items_delivered: int = 0

    @property
    def complete(self) -> bool:
        return not self.failed


class SweepReport(BaseModel):
    """Outcome of one expiration sweep"""

    due: int = 0
    sold: list[UUID] = Field(default_factory=list)
    expired: list[UUID] = Field(default_factory=list)
    failed: list[UUID] = Field(default_factory=list)
