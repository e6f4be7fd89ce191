# auctionmaster/services/claims_ledger.py
"""
Claims Ledger: durable per-player queue of settlements.

A claim is the only way money or items move from one party to another. It is
written in the same transaction as the auction change that owes it, and
deleted only after the recipient actually received everything in it.
"""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auctionmaster.core.database import Database
from auctionmaster.core.exceptions import NotFoundError, PersistenceError
from auctionmaster.models import ClaimRecord
from auctionmaster.schemas.claim import Claim, ClaimReason
from auctionmaster.schemas.item import ItemPayload

logger = logging.getLogger(__name__)


def _dump_items(items: tuple[ItemPayload, ...]) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])


def claim_from_record(record: ClaimRecord) -> Claim:
    return Claim(
        id=record.id,
        player_id=record.player_id,
        player_name=record.player_name,
        items=tuple(ItemPayload.model_validate(i) for i in json.loads(record.items)),
        money=record.money,
        reason=ClaimReason(record.reason),
        timestamp=record.timestamp,
        auction_id=record.auction_id,
    )


def _new_record(claim: Claim) -> ClaimRecord:
    return ClaimRecord(
        id=claim.id,
        player_id=claim.player_id,
        player_name=claim.player_name,
        items=_dump_items(claim.items),
        money=claim.money,
        reason=claim.reason.value,
        timestamp=claim.timestamp,
        auction_id=claim.auction_id,
    )


class ClaimsLedger:
    def __init__(self, database: Database):
        self.database = database

    @asynccontextmanager
    async def _transaction(self, session: AsyncSession | None) -> AsyncIterator[AsyncSession]:
        """Join the caller's transaction, or run in a new one"""
        if session is not None:
            yield session
            return
        try:
            async with self.database.session() as new_session:
                async with new_session.begin():
                    yield new_session
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Claims ledger write failed: {e}") from e

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.database.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Claims ledger read failed: {e}") from e

    async def add_claim(self, claim: Claim, session: AsyncSession | None = None) -> Claim:
        """Append a claim; raises PersistenceError, never skips silently"""
        async with self._transaction(session) as s:
            s.add(_new_record(claim))
            await s.flush()
        logger.debug(
            "Claim %s queued for %s (%s, money=%.2f, items=%d)",
            claim.id,
            claim.player_name,
            claim.reason.value,
            claim.money,
            len(claim.items),
        )
        return claim

    async def get_claims(self, player_id: UUID) -> list[Claim]:
        """Pending claims of one player, oldest first"""
        async with self._reading() as session:
            records = await session.scalars(
                select(ClaimRecord)
                .where(ClaimRecord.player_id == player_id)
                .order_by(ClaimRecord.timestamp.asc(), ClaimRecord.id)
            )
            return [claim_from_record(r) for r in records]

    async def get_claim(self, claim_id: UUID) -> Claim | None:
        async with self._reading() as session:
            record = await session.get(ClaimRecord, claim_id)
            return claim_from_record(record) if record else None

    async def delete_claim(self, claim_id: UUID, session: AsyncSession | None = None) -> bool:
        """
        Remove a delivered claim.

        Returns False when the claim no longer exists, so a second delivery
        attempt of the same claim is detected instead of repeated.
        """
        async with self._transaction(session) as s:
            result = await s.execute(delete(ClaimRecord).where(ClaimRecord.id == claim_id))
            return result.rowcount > 0

    async def split_claim(
        self, claim: Claim, session: AsyncSession | None = None
    ) -> tuple[Claim, Claim]:
        """
        Split a claim holding both items and money into an item claim (same
        id) and a money claim (new id), in one transaction.

        Each part is then delivered and deleted on its own.
        """
        items_part = claim.model_copy(update={"money": 0.0})
        money_part = claim.model_copy(update={"id": uuid4(), "items": ()})
        async with self._transaction(session) as s:
            record = await s.get(ClaimRecord, claim.id)
            if record is None:
                raise NotFoundError("Claim", claim.id)
            record.money = 0.0
            s.add(_new_record(money_part))
            await s.flush()
        logger.debug("Claim %s split off money claim %s", claim.id, money_part.id)
        return items_part, money_part

    async def pending_for_auction(
        self, auction_id: UUID, session: AsyncSession | None = None
    ) -> int:
        """Number of undelivered claims produced by one auction"""
        stmt = select(func.count(ClaimRecord.id)).where(ClaimRecord.auction_id == auction_id)
        if session is not None:
            return (await session.scalar(stmt)) or 0
        async with self._reading() as s:
            return (await s.scalar(stmt)) or 0

    async def all_claims(self) -> list[Claim]:
        async with self._reading() as session:
            records = await session.scalars(
                select(ClaimRecord).order_by(ClaimRecord.timestamp.asc(), ClaimRecord.id)
            )
            return [claim_from_record(r) for r in records]

    async def restore(self, claim: Claim) -> bool:
        """Insert a backed-up claim unless its id already exists"""
        async with self._transaction(None) as session:
            if await session.get(ClaimRecord, claim.id) is not None:
                return False
            session.add(_new_record(claim))
        return True
