# auctionmaster/services/claim_delivery.py
"""
Claim delivery: hand pending claims over to their recipients.

A claim is removed from the ledger only after everything in it was handed over.
A claim holding both items and money is split in two first, and each part is
removed as soon as it went out.
Items go out all-or-nothing per claim; money is deposited through the economy,
which also works for offline players.
"""

import logging
from uuid import UUID

from auctionmaster.core import messages
from auctionmaster.core.exceptions import PersistenceError
from auctionmaster.core.locks import KeyedLock
from auctionmaster.schemas.claim import Claim
from auctionmaster.schemas.report import DrainReport, FailedClaim
from auctionmaster.schemas.result import Failure, FailureCode, Result, Success
from auctionmaster.services.auction_service import AuctionService
from auctionmaster.services.claims_ledger import ClaimsLedger
from auctionmaster.services.economy import EconomyPort, ItemReceiver

logger = logging.getLogger(__name__)


class ClaimDeliveryService:
    def __init__(
        self,
        ledger: ClaimsLedger,
        economy: EconomyPort,
        receiver: ItemReceiver,
        service: AuctionService | None = None,
        locks: KeyedLock | None = None,
    ):
        self.ledger = ledger
        self.economy = economy
        self.receiver = receiver
        self.service = service
        self.locks = locks or (service.locks if service is not None else KeyedLock())

    async def process_claim(self, claim_id: UUID, player_id: UUID) -> Result:
        """
        Deliver one claim to ``player_id``.

        A claim that no longer exists (already delivered) or that belongs to
        someone else yields NOT_FOUND, so a repeated request never pays twice.
        """
        try:
            async with self.locks.hold(("claim", claim_id)):
                claim = await self.ledger.get_claim(claim_id)
                if claim is None or claim.player_id != player_id:
                    return Failure(code=FailureCode.NOT_FOUND, reason=messages.CLAIM_NOT_FOUND)

                parts = [claim]
                if claim.has_items and claim.has_money:
                    if not self.economy.is_available():
                        return Failure(
                            code=FailureCode.ECONOMY_UNAVAILABLE,
                            reason=messages.ECONOMY_UNAVAILABLE,
                        )
                    parts = list(await self.ledger.split_claim(claim))

                delivered = []
                for part in parts:
                    result = await self._deliver(part)
                    if not result.ok:
                        return result
                    if not await self.ledger.delete_claim(part.id):
                        # Someone removed it under us; treat as already delivered
                        logger.warning("Claim %s vanished during delivery", part.id)
                    delivered.append(result.message)

            if claim.auction_id is not None:
                await self._settle_auction(claim.auction_id)
            return Success(message=" ".join(delivered))
        except PersistenceError as e:
            logger.warning("Claim %s could not be processed: %s", claim_id, e)
            return Failure(code=FailureCode.PERSISTENCE_ERROR, reason=messages.TRY_AGAIN)
        except Exception:
            logger.exception("Unexpected error processing claim %s", claim_id)
            return Failure(code=FailureCode.PERSISTENCE_ERROR, reason=messages.TRY_AGAIN)

    async def _deliver(self, claim: Claim) -> Result:
        if claim.has_money and not self.economy.is_available():
            return Failure(code=FailureCode.ECONOMY_UNAVAILABLE, reason=messages.ECONOMY_UNAVAILABLE)

        delivered = []
        if claim.has_items:
            if not await self.receiver.can_receive(claim.player_id, claim.items):
                return Failure(code=FailureCode.INVENTORY_FULL, reason=messages.INVENTORY_FULL)
            if not await self.receiver.give_items(claim.player_id, claim.items):
                return Failure(code=FailureCode.INVENTORY_FULL, reason=messages.INVENTORY_FULL)
            delivered.extend(
                messages.CLAIM_RECEIVED_ITEM.format(item=item.display_string())
                for item in claim.items
            )

        if claim.has_money:
            try:
                deposited = await self.economy.deposit(claim.player_id, claim.money)
            except Exception:
                logger.exception("Deposit for claim %s failed", claim.id)
                deposited = False
            if not deposited:
                return Failure(
                    code=FailureCode.ECONOMY_UNAVAILABLE, reason=messages.ECONOMY_UNAVAILABLE
                )
            delivered.append(messages.CLAIM_RECEIVED_MONEY.format(amount=claim.money))

        logger.info(
            "Delivered claim %s to %s (%s)", claim.id, claim.player_name, claim.reason.value
        )
        return Success(message=" ".join(delivered))

    async def _settle_auction(self, auction_id: UUID) -> None:
        if self.service is None:
            return
        try:
            if await self.ledger.pending_for_auction(auction_id) > 0:
                return
        except PersistenceError as e:
            # The expiration sweep or the next delivery picks it up again
            logger.warning("Could not check claims of auction %s: %s", auction_id, e)
            return
        result = await self.service.mark_claimed(auction_id)
        if not result.ok and result.code is not FailureCode.NOT_FOUND:
            logger.info("Auction %s not marked claimed yet: %s", auction_id, result.reason)

    async def drain_claims(self, player_id: UUID) -> DrainReport:
        """Deliver every pending claim of a player, oldest first"""
        report = DrainReport(player_id=player_id)
        try:
            claims = await self.ledger.get_claims(player_id)
        except PersistenceError as e:
            logger.warning("Could not read claims of %s: %s", player_id, e)
            return report

        for claim in claims:
            result = await self.process_claim(claim.id, player_id)
            if result.ok:
                report.delivered.append(claim.id)
                report.money_delivered += claim.money
                report.items_delivered += len(claim.items)
            else:
                report.failed.append(
                    FailedClaim(claim_id=claim.id, code=result.code, reason=result.reason)
                )

        if report.delivered:
            logger.info(
                "Paid out %d claim(s) to %s (%.2f money, %d item(s)), %d pending",
                len(report.delivered),
                player_id,
                report.money_delivered,
                report.items_delivered,
                len(report.failed),
            )
        return report
