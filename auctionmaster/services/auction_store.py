# auctionmaster/services/auction_store.py
"""
Auction Store: canonical auction records plus a cache of ACTIVE auctions.

Every mutation commits to the database first and only then updates or evicts
the cache entry, so a failed write never leaves the cache ahead of storage.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from auctionmaster.core.clock import Clock, utc_now
from auctionmaster.core.database import Database
from auctionmaster.core.exceptions import IllegalTransition, NotFoundError, PersistenceError
from auctionmaster.models import AuctionRecord, BidRecord
from auctionmaster.schemas.auction import Auction, AuctionCategory, AuctionStatus, Bid
from auctionmaster.schemas.filter import AuctionFilter, SortOrder
from auctionmaster.schemas.item import ItemPayload
from auctionmaster.services.auction_cache import AuctionCache, InMemoryAuctionCache

logger = logging.getLogger(__name__)

# session.info key holding cache changes to apply once the transaction commits
_PENDING_CACHE = "auctionmaster.pending_cache"

_CLEANABLE = (AuctionStatus.EXPIRED.value, AuctionStatus.CLAIMED.value)


def _bid_from_record(record: BidRecord) -> Bid:
    return Bid(
        id=record.id,
        auction_id=record.auction_id,
        bidder_id=record.bidder_id,
        bidder_name=record.bidder_name,
        amount=record.amount,
        timestamp=record.timestamp,
    )


def _bid_record(bid: Bid, sequence: int) -> BidRecord:
    return BidRecord(
        id=bid.id,
        auction_id=bid.auction_id,
        bidder_id=bid.bidder_id,
        bidder_name=bid.bidder_name,
        amount=bid.amount,
        timestamp=bid.timestamp,
        sequence=sequence,
    )


def auction_from_record(record: AuctionRecord) -> Auction:
    return Auction(
        id=record.id,
        seller_id=record.seller_id,
        seller_name=record.seller_name,
        item=ItemPayload.model_validate_json(record.item_data),
        start_price=record.start_price,
        current_bid=record.current_bid,
        buy_now_price=record.buy_now_price,
        current_bidder_id=record.current_bidder_id,
        current_bidder_name=record.current_bidder_name,
        bid_history=tuple(_bid_from_record(b) for b in record.bids),
        created_at=record.created_at,
        expires_at=record.expires_at,
        duration=record.duration,
        status=AuctionStatus(record.status),
        category=AuctionCategory(record.category),
        claimed=record.claimed,
    )


def _copy_fields(record: AuctionRecord, auction: Auction) -> None:
    record.seller_id = auction.seller_id
    record.seller_name = auction.seller_name
    record.item_data = auction.item.model_dump_json()
    record.start_price = auction.start_price
    record.current_bid = auction.current_bid
    record.buy_now_price = auction.buy_now_price
    record.current_bidder_id = auction.current_bidder_id
    record.current_bidder_name = auction.current_bidder_name
    record.created_at = auction.created_at
    record.expires_at = auction.expires_at
    record.duration = auction.duration
    record.status = auction.status.value
    record.category = auction.category.value
    record.claimed = auction.claimed


def _new_record(auction: Auction) -> AuctionRecord:
    record = AuctionRecord(id=auction.id)
    _copy_fields(record, auction)
    record.bids = [_bid_record(bid, seq) for seq, bid in enumerate(auction.bid_history)]
    return record


class AuctionStore:
    """Single source of truth for auction records"""

    def __init__(
        self,
        database: Database,
        cache: AuctionCache | None = None,
        clock: Clock = utc_now,
    ):
        self.database = database
        self.cache = cache if cache is not None else InMemoryAuctionCache()
        self._clock = clock

    # ------------------------------------------------------------------
    # Transactions and cache bookkeeping
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Run a block inside one database transaction.

        Cache updates requested through this session are applied only after the
        commit succeeds. Database failures surface as PersistenceError.
        """
        pending: list[tuple[str, Auction | UUID]] = []
        try:
            async with self.database.session() as session:
                async with session.begin():
                    session.info[_PENDING_CACHE] = pending
                    yield session
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Database write failed: {e}") from e
        await self._apply_cache_changes(pending)

    @asynccontextmanager
    async def _reading(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.database.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Database read failed: {e}") from e

    def _defer_cache(self, session: AsyncSession, action: str, value: Auction | UUID) -> None:
        session.info[_PENDING_CACHE].append((action, value))

    async def _apply_cache_changes(self, pending: list[tuple[str, Auction | UUID]]) -> None:
        for action, value in pending:
            try:
                if action == "put":
                    await self.cache.put(value)
                else:
                    await self.cache.evict(value)
            except RedisError as e:
                # Storage already holds the truth; the next reload repairs the cache
                logger.warning("Auction cache update failed (%s): %s", action, e)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, auction: Auction, session: AsyncSession | None = None) -> Auction:
        """Insert a new auction; it always starts out ACTIVE"""
        if auction.status is not AuctionStatus.ACTIVE or auction.claimed:
            auction = auction.model_copy(update={"status": AuctionStatus.ACTIVE, "claimed": False})

        if session is None:
            async with self.transaction() as session:
                return await self.create(auction, session)

        session.add(_new_record(auction))
        await session.flush()
        if auction.is_active(self._clock()):
            self._defer_cache(session, "put", auction)
        logger.info("Auction %s created by %s", auction.id, auction.seller_name)
        return auction

    async def update(self, auction: Auction, session: AsyncSession | None = None) -> Auction:
        """
        Replace the stored auction with ``auction``.

        Bids in ``bid_history`` that are not stored yet are inserted; stored
        bids are never modified or removed.
        """
        if session is None:
            async with self.transaction() as session:
                return await self.update(auction, session)

        record = await session.scalar(
            select(AuctionRecord)
            .options(selectinload(AuctionRecord.bids))
            .where(AuctionRecord.id == auction.id)
        )
        if record is None:
            raise NotFoundError("Auction", auction.id)

        stored_ids = [bid.id for bid in record.bids]
        history_ids = [bid.id for bid in auction.bid_history]
        if history_ids[: len(stored_ids)] != stored_ids:
            raise PersistenceError(
                f"Auction {auction.id} update would rewrite its bid history; reload and retry"
            )

        _copy_fields(record, auction)
        for sequence, bid in enumerate(auction.bid_history[len(stored_ids):], start=len(stored_ids)):
            record.bids.append(_bid_record(bid, sequence))
        await session.flush()

        if auction.status is AuctionStatus.ACTIVE:
            self._defer_cache(session, "put", auction)
        else:
            self._defer_cache(session, "evict", auction.id)
        return auction

    async def delete(self, auction_id: UUID, force: bool = False) -> bool:
        """Delete an auction together with its bids; ACTIVE auctions need ``force``"""
        async with self.transaction() as session:
            status = await session.scalar(
                select(AuctionRecord.status).where(AuctionRecord.id == auction_id)
            )
            if status is None:
                return False
            if status == AuctionStatus.ACTIVE.value and not force:
                raise IllegalTransition(f"Auction {auction_id} is still active")

            await session.execute(delete(BidRecord).where(BidRecord.auction_id == auction_id))
            await session.execute(delete(AuctionRecord).where(AuctionRecord.id == auction_id))
            self._defer_cache(session, "evict", auction_id)
        return True

    async def restore(self, auction: Auction) -> bool:
        """Insert a backed-up auction as-is; skip ids that already exist"""
        async with self.transaction() as session:
            exists = await session.scalar(
                select(AuctionRecord.id).where(AuctionRecord.id == auction.id)
            )
            if exists is not None:
                return False
            session.add(_new_record(auction))
            if auction.status is AuctionStatus.ACTIVE:
                self._defer_cache(session, "put", auction)
        return True

    async def cleanup_expired(self, older_than: timedelta) -> int:
        """Delete EXPIRED/CLAIMED auctions that ended before ``now - older_than``"""
        cutoff = self._clock() - older_than
        async with self.transaction() as session:
            ids = list(
                await session.scalars(
                    select(AuctionRecord.id).where(
                        AuctionRecord.status.in_(_CLEANABLE),
                        AuctionRecord.expires_at < cutoff,
                    )
                )
            )
            if not ids:
                return 0

            await session.execute(delete(BidRecord).where(BidRecord.auction_id.in_(ids)))
            await session.execute(delete(AuctionRecord).where(AuctionRecord.id.in_(ids)))
            for auction_id in ids:
                self._defer_cache(session, "evict", auction_id)

        logger.info("Cleaned up %d auction(s) older than %s", len(ids), cutoff.isoformat())
        return len(ids)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, auction_id: UUID) -> Auction | None:
        """Cache first; a miss reads storage without populating the cache"""
        try:
            cached = await self.cache.get(auction_id)
        except RedisError as e:
            logger.warning("Auction cache read failed: %s", e)
            cached = None
        if cached is not None:
            return cached
        return await self.load(auction_id)

    async def load(self, auction_id: UUID, session: AsyncSession | None = None) -> Auction | None:
        """Read an auction straight from storage"""
        stmt = (
            select(AuctionRecord)
            .options(selectinload(AuctionRecord.bids))
            .where(AuctionRecord.id == auction_id)
        )
        if session is not None:
            record = await session.scalar(stmt)
            return auction_from_record(record) if record else None

        async with self._reading() as session:
            record = await session.scalar(stmt)
            return auction_from_record(record) if record else None

    async def query(self, auction_filter: AuctionFilter) -> list[Auction]:
        """Filtered, sorted, paginated search; always served from storage"""
        stmt = select(AuctionRecord).options(selectinload(AuctionRecord.bids))

        if auction_filter.category is not None:
            stmt = stmt.where(AuctionRecord.category == auction_filter.category.value)
        if auction_filter.status is not None:
            stmt = stmt.where(AuctionRecord.status == auction_filter.status.value)
        if auction_filter.seller_id is not None:
            stmt = stmt.where(AuctionRecord.seller_id == auction_filter.seller_id)
        if auction_filter.min_price is not None:
            stmt = stmt.where(AuctionRecord.current_bid >= auction_filter.min_price)
        if auction_filter.max_price is not None:
            stmt = stmt.where(AuctionRecord.current_bid <= auction_filter.max_price)
        if auction_filter.search_text:
            stmt = stmt.where(
                func.lower(AuctionRecord.item_data).contains(
                    auction_filter.search_text.lower(), autoescape=True
                )
            )
        if auction_filter.bidder_id is not None:
            # Auctions with at least one bid from this player
            stmt = stmt.where(
                select(BidRecord.id)
                .where(
                    BidRecord.auction_id == AuctionRecord.id,
                    BidRecord.bidder_id == auction_filter.bidder_id,
                )
                .exists()
            )

        stmt = stmt.order_by(*self._ordering(auction_filter.sort_order), AuctionRecord.id)
        if auction_filter.limit is not None:
            stmt = stmt.limit(auction_filter.limit)
        if auction_filter.offset:
            stmt = stmt.offset(auction_filter.offset)

        async with self._reading() as session:
            records = (await session.scalars(stmt)).all()
            return [auction_from_record(r) for r in records]

    @staticmethod
    def _ordering(sort_order: SortOrder) -> tuple:
        if sort_order is SortOrder.OLDEST:
            return (AuctionRecord.created_at.asc(),)
        if sort_order is SortOrder.PRICE_LOW:
            return (AuctionRecord.current_bid.asc(),)
        if sort_order is SortOrder.PRICE_HIGH:
            return (AuctionRecord.current_bid.desc(),)
        if sort_order is SortOrder.ENDING_SOON:
            return (AuctionRecord.expires_at.asc(),)
        if sort_order is SortOrder.MOST_BIDS:
            bid_count = (
                select(func.count(BidRecord.id))
                .where(BidRecord.auction_id == AuctionRecord.id)
                .correlate(AuctionRecord)
                .scalar_subquery()
            )
            return (bid_count.desc(), AuctionRecord.created_at.desc())
        return (AuctionRecord.created_at.desc(),)

    async def count_active_by_seller(self, seller_id: UUID) -> int:
        async with self._reading() as session:
            count = await session.scalar(
                select(func.count(AuctionRecord.id)).where(
                    AuctionRecord.seller_id == seller_id,
                    AuctionRecord.status == AuctionStatus.ACTIVE.value,
                )
            )
            return count or 0

    async def bid_history(self, auction_id: UUID) -> list[Bid]:
        """Bids of one auction, newest first"""
        async with self._reading() as session:
            records = await session.scalars(
                select(BidRecord)
                .where(BidRecord.auction_id == auction_id)
                .order_by(BidRecord.sequence.desc())
            )
            return [_bid_from_record(r) for r in records]

    async def due_for_expiration(self, now: datetime | None = None) -> list[Auction]:
        """ACTIVE auctions whose end time has passed"""
        now = now or self._clock()
        async with self._reading() as session:
            records = await session.scalars(
                select(AuctionRecord)
                .options(selectinload(AuctionRecord.bids))
                .where(
                    AuctionRecord.status == AuctionStatus.ACTIVE.value,
                    AuctionRecord.expires_at <= now,
                )
                .order_by(AuctionRecord.expires_at.asc())
            )
            return [auction_from_record(r) for r in records]

    async def active_auctions(self) -> list[Auction]:
        return await self.query(AuctionFilter(status=AuctionStatus.ACTIVE, limit=None))

    async def all_auctions(self) -> list[Auction]:
        return await self.query(AuctionFilter(limit=None, sort_order=SortOrder.OLDEST))

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    async def reload_cache(self) -> int:
        """
        Rebuild the cache from ACTIVE records that have not run out yet.

        A settlement that commits between reading the snapshot and writing it
        evicts before the stale copy lands, so every cached id is checked
        against storage again once the snapshot is in place.
        """
        now = self._clock()
        active = [a for a in await self.active_auctions() if a.is_active(now)]
        await self.cache.replace_all(active)

        stale = {a.id for a in active} - await self._still_active([a.id for a in active])
        for auction_id in stale:
            await self.cache.evict(auction_id)
        if stale:
            logger.info("Dropped %d auction(s) settled during the cache reload", len(stale))
        return len(active) - len(stale)

    async def _still_active(self, auction_ids: list[UUID]) -> set[UUID]:
        if not auction_ids:
            return set()
        async with self._reading() as session:
            ids = await session.scalars(
                select(AuctionRecord.id).where(
                    AuctionRecord.id.in_(auction_ids),
                    AuctionRecord.status == AuctionStatus.ACTIVE.value,
                )
            )
            return set(ids)

    async def invalidate_cache(self) -> None:
        await self.cache.clear()
