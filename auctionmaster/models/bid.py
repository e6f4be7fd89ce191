from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auctionmaster.core.database import Base

if TYPE_CHECKING:
    from auctionmaster.models.auction import AuctionRecord


class BidRecord(Base):
    """Bid ORM model; rows are only ever inserted, or deleted with their auction"""

    __tablename__ = "bids"
    __table_args__ = (Index("idx_bids_auction_timestamp", "auction_id", "timestamp"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    auction_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("auctions.id", ondelete="CASCADE"), nullable=False
    )

    bidder_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    bidder_name: Mapped[str] = mapped_column(String(64), nullable=False)

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    # Position in the auction's bid history
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    auction: Mapped["AuctionRecord"] = relationship("AuctionRecord", back_populates="bids")

    def __repr__(self) -> str:
        return f"<BidRecord(id={self.id}, auction_id={self.auction_id}, amount={self.amount})>"
