from datetime import datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Float, Index, Interval, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from auctionmaster.core.database import Base

if TYPE_CHECKING:
    from auctionmaster.models.bid import BidRecord


class AuctionRecord(Base):
    """Auction ORM model"""

    __tablename__ = "auctions"
    __table_args__ = (
        # Expiration sweep: WHERE status = 'ACTIVE' AND expires_at <= now
        Index("idx_auctions_status_expires", "status", "expires_at"),
        Index("idx_auctions_seller_status", "seller_id", "status"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Seller information
    seller_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    seller_name: Mapped[str] = mapped_column(String(64), nullable=False)

    # Item data (JSON serialized)
    item_data: Mapped[str] = mapped_column(Text, nullable=False)

    # Pricing
    start_price: Mapped[float] = mapped_column(Float, nullable=False)
    current_bid: Mapped[float] = mapped_column(Float, nullable=False, index=True)
    buy_now_price: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Current bidder
    current_bidder_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    current_bidder_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Timing
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[timedelta] = mapped_column(Interval, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    category: Mapped[str] = mapped_column(String(20), nullable=False, default="OTHER")
    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    bids: Mapped[list["BidRecord"]] = relationship(
        "BidRecord",
        back_populates="auction",
        cascade="all, delete-orphan",
        order_by="BidRecord.sequence",
    )

    def __repr__(self) -> str:
        return f"<AuctionRecord(id={self.id}, status={self.status})>"
