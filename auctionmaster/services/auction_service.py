# auctionmaster/services/auction_service.py
"""
Auction Service: validation and settlement of auction intents.

Validation methods are pure functions of the current auction state and the
intent. Processing methods take the per-auction lock, reload the auction from
storage, re-validate, and then write the auction change together with every
claim it produces in one transaction. They always return a ``Result``.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import NamedTuple
from uuid import UUID

from auctionmaster.core import messages
from auctionmaster.core.clock import Clock, utc_now
from auctionmaster.core.config import Settings, settings
from auctionmaster.core.exceptions import NotFoundError, PersistenceError
from auctionmaster.core.locks import KeyedLock
from auctionmaster.schemas.auction import Auction, AuctionCategory, AuctionStatus, Bid
from auctionmaster.schemas.claim import Claim, ClaimReason
from auctionmaster.schemas.item import ItemPayload
from auctionmaster.schemas.result import Failure, FailureCode, Result, Success
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.claims_ledger import ClaimsLedger
from auctionmaster.services.economy import EconomyPort

logger = logging.getLogger(__name__)


class Debit(NamedTuple):
    """Money taken from a player before the settlement was written"""

    player_id: UUID
    player_name: str
    amount: float
    refund_reason: ClaimReason


def _fail(code: FailureCode, reason: str) -> Failure:
    return Failure(code=code, reason=reason)


class AuctionService:
    def __init__(
        self,
        store: AuctionStore,
        ledger: ClaimsLedger,
        economy: EconomyPort,
        config: Settings = settings,
        locks: KeyedLock | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.ledger = ledger
        self.economy = economy
        self.config = config
        self.locks = locks or KeyedLock()
        self._clock = clock

    # ========== VALIDATION ==========

    def validate_creation(
        self,
        item: ItemPayload,
        category: AuctionCategory,
        start_price: float,
        duration: timedelta,
        buy_now_price: float | None,
        active_count: int,
    ) -> Result:
        """Check a new listing against the listing rules"""
        cfg = self.config

        if not cfg.is_item_allowed(category.value, item.material):
            return _fail(FailureCode.ITEM_BLACKLISTED, messages.ITEM_BLACKLISTED)

        if active_count >= cfg.MAX_ACTIVE_PER_PLAYER:
            return _fail(
                FailureCode.MAX_AUCTIONS_REACHED,
                messages.MAX_AUCTIONS_REACHED.format(max=cfg.MAX_ACTIVE_PER_PLAYER),
            )

        # Phrased as acceptance checks so NaN fails them
        if not start_price >= cfg.MIN_START_PRICE:
            return _fail(
                FailureCode.PRICE_TOO_LOW,
                messages.PRICE_TOO_LOW.format(min_price=cfg.MIN_START_PRICE),
            )
        if not start_price <= cfg.MAX_START_PRICE:
            return _fail(
                FailureCode.PRICE_TOO_HIGH,
                messages.PRICE_TOO_HIGH.format(max_price=cfg.MAX_START_PRICE),
            )

        if buy_now_price is not None and not (
            math.isfinite(buy_now_price) and buy_now_price > start_price
        ):
            return _fail(FailureCode.INVALID_BUY_NOW_PRICE, messages.INVALID_BUY_NOW_PRICE)

        if duration < cfg.min_duration:
            return _fail(
                FailureCode.DURATION_TOO_SHORT,
                messages.DURATION_TOO_SHORT.format(hours=cfg.MIN_DURATION_HOURS),
            )
        if duration > cfg.max_duration:
            return _fail(
                FailureCode.DURATION_TOO_LONG,
                messages.DURATION_TOO_LONG.format(hours=cfg.MAX_DURATION_HOURS),
            )

        return Success()

    def validate_bid(
        self,
        auction: Auction,
        bidder_id: UUID,
        amount: float,
        now: datetime | None = None,
    ) -> Result:
        now = now or self._clock()

        if auction.seller_id == bidder_id:
            return _fail(FailureCode.CANNOT_BID_OWN, messages.CANNOT_BID_OWN)

        if not auction.status.accepts_bids:
            return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.AUCTION_NOT_ACTIVE)

        if auction.is_expired(now):
            return _fail(FailureCode.AUCTION_EXPIRED, messages.AUCTION_EXPIRED)

        min_bid = auction.minimum_bid(self.config.MIN_BID_INCREMENT)
        if not math.isfinite(amount) or amount < min_bid or amount <= auction.current_bid:
            return _fail(
                FailureCode.BID_TOO_LOW,
                messages.BID_TOO_LOW.format(min_bid=max(min_bid, auction.current_bid)),
            )

        return Success()

    def validate_buy_now(
        self, auction: Auction, buyer_id: UUID, now: datetime | None = None
    ) -> Result:
        now = now or self._clock()

        if auction.buy_now_price is None:
            return _fail(FailureCode.NO_BUY_NOW, messages.NO_BUY_NOW)

        if auction.seller_id == buyer_id:
            return _fail(FailureCode.CANNOT_BUY_OWN, messages.CANNOT_BUY_OWN)

        if not auction.status.accepts_bids:
            return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.AUCTION_NOT_ACTIVE)
        if auction.is_expired(now):
            return _fail(FailureCode.AUCTION_EXPIRED, messages.AUCTION_EXPIRED)

        return Success()

    def validate_cancellation(
        self, auction: Auction, canceller_id: UUID, is_admin: bool = False
    ) -> Result:
        # Admins can always cancel
        if is_admin:
            return Success()

        if not self.config.ALLOW_SELLER_CANCEL:
            return _fail(FailureCode.CANCEL_NOT_ALLOWED, messages.CANCEL_NOT_ALLOWED)

        if auction.seller_id != canceller_id:
            return _fail(FailureCode.NOT_SELLER, messages.NOT_SELLER)

        if auction.status is not AuctionStatus.ACTIVE:
            return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.CANNOT_CANCEL)

        return Success()

    # ========== PROCESSING ==========

    async def create_auction(
        self,
        seller_id: UUID,
        seller_name: str,
        item: ItemPayload,
        start_price: float,
        duration: timedelta,
        buy_now_price: float | None = None,
        category: AuctionCategory = AuctionCategory.OTHER,
    ) -> Result:
        """List an item; charges the listing fee up front"""
        try:
            # Serialize per seller so two listings cannot both pass the limit check
            async with self.locks.hold(("seller", seller_id)):
                active_count = await self.store.count_active_by_seller(seller_id)
                check = self.validate_creation(
                    item, category, start_price, duration, buy_now_price, active_count
                )
                if not check.ok:
                    return check

                auction = Auction.open(
                    seller_id=seller_id,
                    seller_name=seller_name,
                    item=item,
                    start_price=start_price,
                    duration=duration,
                    buy_now_price=buy_now_price,
                    category=category,
                    now=self._clock(),
                )

                fee = self.config.calculate_listing_fee(start_price)
                debits: list[Debit] = []
                if fee > 0:
                    failure = await self._charge(
                        seller_id, fee, messages.INSUFFICIENT_FUNDS_FEE.format(fee=fee)
                    )
                    if failure:
                        return failure
                    debits.append(Debit(seller_id, seller_name, fee, ClaimReason.AUCTION_CANCELLED))

                failure = await self._settle(auction, [], debits, create=True)
                if failure:
                    return failure

                return Success(
                    message=messages.AUCTION_CREATED.format(item=item.display_string()),
                    auction=auction,
                )
        except Exception:
            logger.exception("Unexpected error creating auction for %s", seller_name)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    async def place_bid(
        self, auction_id: UUID, bidder_id: UUID, bidder_name: str, amount: float
    ) -> Result:
        """
        Accept a bid.

        The bid amount is held from the bidder. The previous leading bidder,
        if any, gets an OUTBID_REFUND claim for their own (previous) amount.
        """
        try:
            async with self.locks.hold(("auction", auction_id)):
                auction = await self.store.load(auction_id)
                if auction is None:
                    return _fail(FailureCode.NOT_FOUND, messages.AUCTION_NOT_FOUND)

                now = self._clock()
                check = self.validate_bid(auction, bidder_id, amount, now)
                if not check.ok:
                    return check

                claims = []
                if auction.current_bidder_id is not None:
                    claims.append(
                        Claim(
                            player_id=auction.current_bidder_id,
                            player_name=auction.current_bidder_name or "",
                            money=auction.current_bid,
                            reason=ClaimReason.OUTBID_REFUND,
                            auction_id=auction.id,
                            timestamp=now,
                        )
                    )

                bid = Bid(
                    auction_id=auction.id,
                    bidder_id=bidder_id,
                    bidder_name=bidder_name,
                    amount=amount,
                    timestamp=now,
                )
                updated = auction.with_bid(bid)

                failure = await self._charge(
                    bidder_id, amount, messages.INSUFFICIENT_FUNDS_BID.format(amount=amount)
                )
                if failure:
                    return failure
                debits = [Debit(bidder_id, bidder_name, amount, ClaimReason.OUTBID_REFUND)]

                failure = await self._settle(updated, claims, debits)
                if failure:
                    return failure

                logger.info(
                    "Bid %.2f by %s accepted on auction %s", amount, bidder_name, auction.id
                )
                return Success(
                    message=messages.BID_PLACED.format(
                        amount=amount, item=auction.item.display_string()
                    ),
                    auction=updated,
                )
        except Exception:
            logger.exception("Unexpected error placing bid on auction %s", auction_id)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    async def buy_now(self, auction_id: UUID, buyer_id: UUID, buyer_name: str) -> Result:
        """Instant purchase at the buy-now price"""
        try:
            async with self.locks.hold(("auction", auction_id)):
                auction = await self.store.load(auction_id)
                if auction is None:
                    return _fail(FailureCode.NOT_FOUND, messages.AUCTION_NOT_FOUND)

                now = self._clock()
                check = self.validate_buy_now(auction, buyer_id, now)
                if not check.ok:
                    return check

                price = auction.buy_now_price
                claims = []
                if auction.current_bidder_id is not None:
                    claims.append(
                        Claim(
                            player_id=auction.current_bidder_id,
                            player_name=auction.current_bidder_name or "",
                            money=auction.current_bid,
                            reason=ClaimReason.OUTBID_REFUND,
                            auction_id=auction.id,
                            timestamp=now,
                        )
                    )
                claims.append(
                    Claim(
                        player_id=buyer_id,
                        player_name=buyer_name,
                        items=(auction.item,),
                        reason=ClaimReason.AUCTION_WON,
                        auction_id=auction.id,
                        timestamp=now,
                    )
                )
                claims.append(
                    Claim(
                        player_id=auction.seller_id,
                        player_name=auction.seller_name,
                        money=price,
                        reason=ClaimReason.AUCTION_SOLD,
                        auction_id=auction.id,
                        timestamp=now,
                    )
                )

                updated = auction.with_status(AuctionStatus.SOLD)

                failure = await self._charge(
                    buyer_id, price, messages.INSUFFICIENT_FUNDS_BID.format(amount=price)
                )
                if failure:
                    return failure
                debits = [Debit(buyer_id, buyer_name, price, ClaimReason.OUTBID_REFUND)]

                failure = await self._settle(updated, claims, debits)
                if failure:
                    return failure

                logger.info("Auction %s bought now by %s for %.2f", auction.id, buyer_name, price)
                return Success(
                    message=messages.BOUGHT_NOW.format(
                        item=auction.item.display_string(), amount=price
                    ),
                    auction=updated,
                )
        except Exception:
            logger.exception("Unexpected error in buy-now on auction %s", auction_id)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    async def expire_auction(self, auction_id: UUID) -> Result:
        """
        Settle an auction whose time ran out (scheduler entry point).

        With a leading bidder the auction is SOLD to them, otherwise it is
        EXPIRED and the item goes back to the seller.
        """
        try:
            async with self.locks.hold(("auction", auction_id)):
                auction = await self.store.load(auction_id)
                if auction is None:
                    return _fail(FailureCode.NOT_FOUND, messages.AUCTION_NOT_FOUND)

                now = self._clock()
                if auction.status is not AuctionStatus.ACTIVE:
                    return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.AUCTION_NOT_ACTIVE)
                if not auction.is_expired(now):
                    return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.AUCTION_NOT_DUE)

                item_name = auction.item.display_string()
                if auction.current_bidder_id is not None:
                    claims = [
                        Claim(
                            player_id=auction.current_bidder_id,
                            player_name=auction.current_bidder_name or "",
                            items=(auction.item,),
                            reason=ClaimReason.AUCTION_WON,
                            auction_id=auction.id,
                            timestamp=now,
                        ),
                        Claim(
                            player_id=auction.seller_id,
                            player_name=auction.seller_name,
                            money=auction.current_bid,
                            reason=ClaimReason.AUCTION_SOLD,
                            auction_id=auction.id,
                            timestamp=now,
                        ),
                    ]
                    updated = auction.with_status(AuctionStatus.SOLD)
                    message = messages.AUCTION_SOLD.format(
                        item=item_name,
                        bidder=auction.current_bidder_name,
                        amount=auction.current_bid,
                    )
                else:
                    claims = [
                        Claim(
                            player_id=auction.seller_id,
                            player_name=auction.seller_name,
                            items=(auction.item,),
                            reason=ClaimReason.AUCTION_UNSOLD,
                            auction_id=auction.id,
                            timestamp=now,
                        )
                    ]
                    updated = auction.with_status(AuctionStatus.EXPIRED)
                    message = messages.AUCTION_EXPIRED_NO_BIDS.format(item=item_name)

                failure = await self._settle(updated, claims, [])
                if failure:
                    return failure
                return Success(message=message, auction=updated)
        except Exception:
            logger.exception("Unexpected error expiring auction %s", auction_id)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    async def cancel_auction(
        self, auction_id: UUID, canceller_id: UUID, is_admin: bool = False
    ) -> Result:
        """
        Cancel an ACTIVE auction: the bidder is refunded through a claim and the
        item goes back to the seller. A seller cancelling pays the cancellation
        fee immediately; admin cancellations are free.
        """
        try:
            async with self.locks.hold(("auction", auction_id)):
                auction = await self.store.load(auction_id)
                if auction is None:
                    return _fail(FailureCode.NOT_FOUND, messages.AUCTION_NOT_FOUND)

                check = self.validate_cancellation(auction, canceller_id, is_admin)
                if not check.ok:
                    return check
                if not auction.status.can_transition_to(AuctionStatus.CANCELLED):
                    return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.CANNOT_CANCEL)

                now = self._clock()
                claims = []
                if auction.current_bidder_id is not None:
                    claims.append(
                        Claim(
                            player_id=auction.current_bidder_id,
                            player_name=auction.current_bidder_name or "",
                            money=auction.current_bid,
                            reason=ClaimReason.AUCTION_CANCELLED,
                            auction_id=auction.id,
                            timestamp=now,
                        )
                    )
                claims.append(
                    Claim(
                        player_id=auction.seller_id,
                        player_name=auction.seller_name,
                        items=(auction.item,),
                        reason=ClaimReason.AUCTION_CANCELLED,
                        auction_id=auction.id,
                        timestamp=now,
                    )
                )

                updated = auction.with_status(AuctionStatus.CANCELLED)

                debits: list[Debit] = []
                fee = 0.0 if is_admin else self.config.calculate_cancellation_fee(auction.current_bid)
                if fee > 0:
                    failure = await self._charge(
                        canceller_id, fee, messages.INSUFFICIENT_FUNDS_CANCEL.format(fee=fee)
                    )
                    if failure:
                        return failure
                    debits.append(
                        Debit(canceller_id, auction.seller_name, fee, ClaimReason.AUCTION_CANCELLED)
                    )

                failure = await self._settle(updated, claims, debits)
                if failure:
                    return failure

                logger.info(
                    "Auction %s cancelled by %s%s",
                    auction.id,
                    canceller_id,
                    " (admin)" if is_admin else "",
                )
                message = (
                    messages.CANCEL_FEE_CHARGED.format(fee=fee)
                    if fee > 0
                    else messages.AUCTION_CANCELLED
                )
                return Success(message=message, auction=updated)
        except Exception:
            logger.exception("Unexpected error cancelling auction %s", auction_id)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    async def mark_claimed(self, auction_id: UUID) -> Result:
        """Move a settled auction to CLAIMED once none of its claims are pending"""
        try:
            async with self.locks.hold(("auction", auction_id)):
                async with self.store.transaction() as session:
                    auction = await self.store.load(auction_id, session)
                    if auction is None:
                        return _fail(FailureCode.NOT_FOUND, messages.AUCTION_NOT_FOUND)
                    if auction.status is AuctionStatus.CLAIMED:
                        return Success(auction=auction)
                    if not auction.status.is_settled:
                        return _fail(FailureCode.AUCTION_NOT_ACTIVE, messages.AUCTION_NOT_DUE)

                    pending = await self.ledger.pending_for_auction(auction_id, session)
                    if pending:
                        return _fail(
                            FailureCode.CLAIMS_OUTSTANDING,
                            messages.CLAIMS_OUTSTANDING.format(count=pending),
                        )

                    updated = await self.store.update(auction.with_claimed(), session)

                return Success(
                    message=messages.AUCTION_MARKED_CLAIMED.format(
                        item=auction.item.display_string()
                    ),
                    auction=updated,
                )
        except PersistenceError as e:
            logger.warning("Could not mark auction %s as claimed: %s", auction_id, e)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)
        except Exception:
            logger.exception("Unexpected error marking auction %s claimed", auction_id)
            return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    # ========== HELPERS ==========

    async def _charge(self, player_id: UUID, amount: float, insufficient: str) -> Failure | None:
        """Withdraw ``amount`` right away; None on success"""
        if not self.economy.is_available():
            return _fail(FailureCode.ECONOMY_UNAVAILABLE, messages.ECONOMY_UNAVAILABLE)

        balance = await self.economy.get_balance(player_id)
        if balance < amount:
            return _fail(FailureCode.INSUFFICIENT_FUNDS, insufficient)

        if not await self.economy.withdraw(player_id, amount):
            return _fail(FailureCode.ECONOMY_UNAVAILABLE, messages.ECONOMY_UNAVAILABLE)
        return None

    async def _settle(
        self,
        auction: Auction,
        claims: list[Claim],
        debits: list[Debit],
        create: bool = False,
    ) -> Failure | None:
        """
        Write the auction change and its claims in one transaction.

        Persistence failures are retried; a claim is never written without its
        auction change or the other way round. If every attempt fails, the
        money taken for this attempt is given back.
        """
        attempts = max(1, self.config.SETTLEMENT_RETRY_ATTEMPTS)
        try:
            for attempt in range(1, attempts + 1):
                try:
                    async with self.store.transaction() as session:
                        if create:
                            await self.store.create(auction, session)
                        else:
                            await self.store.update(auction, session)
                        for claim in claims:
                            await self.ledger.add_claim(claim, session)
                    return None
                except PersistenceError as e:
                    logger.warning(
                        "Settlement of auction %s failed (attempt %d/%d): %s",
                        auction.id,
                        attempt,
                        attempts,
                        e,
                    )
                    if attempt < attempts:
                        await asyncio.sleep(self.config.SETTLEMENT_RETRY_DELAY_SECONDS)
        except NotFoundError:
            await self._refund(debits)
            return _fail(FailureCode.NOT_FOUND, messages.AUCTION_NOT_FOUND)
        except Exception:
            await self._refund(debits)
            raise

        logger.error("Giving up on settlement of auction %s after %d attempts", auction.id, attempts)
        await self._refund(debits)
        return _fail(FailureCode.PERSISTENCE_ERROR, messages.TRY_AGAIN)

    async def _refund(self, debits: list[Debit]) -> None:
        """Give back money withdrawn for a settlement that did not happen"""
        for debit in debits:
            try:
                if await self.economy.deposit(debit.player_id, debit.amount):
                    continue
            except Exception:
                logger.exception("Refund deposit of %.2f to %s failed", debit.amount, debit.player_id)

            # Deposit refused: owe the money through a claim instead
            try:
                await self.ledger.add_claim(
                    Claim(
                        player_id=debit.player_id,
                        player_name=debit.player_name,
                        money=debit.amount,
                        reason=debit.refund_reason,
                        timestamp=self._clock(),
                    )
                )
            except PersistenceError:
                logger.critical(
                    "Could not refund %.2f to %s (%s); manual correction required",
                    debit.amount,
                    debit.player_name,
                    debit.player_id,
                )
