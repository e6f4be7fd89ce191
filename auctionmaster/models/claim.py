from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Float, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from auctionmaster.core.database import Base


class ClaimRecord(Base):
    """Claim ORM model"""

    __tablename__ = "claims"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Player information
    player_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    player_name: Mapped[str] = mapped_column(String(64), nullable=False)

    # Claimable items (JSON array)
    items: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    money: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    reason: Mapped[str] = mapped_column(String(50), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Not a foreign key: a claim outlives the auction that produced it
    auction_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<ClaimRecord(id={self.id}, player_id={self.player_id}, reason={self.reason})>"
