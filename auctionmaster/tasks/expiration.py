# auctionmaster/tasks/expiration.py
"""Background task body that settles auctions whose time ran out."""

import logging

from auctionmaster.core.exceptions import PersistenceError
from auctionmaster.schemas.auction import AuctionStatus
from auctionmaster.schemas.report import SweepReport
from auctionmaster.services.auction_service import AuctionService
from auctionmaster.services.auction_store import AuctionStore

logger = logging.getLogger(__name__)


async def run_expiration_sweep(store: AuctionStore, service: AuctionService) -> SweepReport:
    """
    Expire every ACTIVE auction past its end time.

    Each auction settles on its own; one failure never blocks the others and
    the auction is simply picked up again by the next sweep.
    """
    report = SweepReport()
    try:
        due = await store.due_for_expiration()
    except PersistenceError as e:
        logger.warning("Could not load auctions due for expiration: %s", e)
        return report

    report.due = len(due)
    for auction in due:
        result = await service.expire_auction(auction.id)
        if not result.ok:
            report.failed.append(auction.id)
            logger.warning("Auction %s not expired: %s", auction.id, result.reason)
            continue

        if result.auction.status is AuctionStatus.SOLD:
            report.sold.append(auction.id)
        else:
            report.expired.append(auction.id)
        logger.info(result.message)

    if report.due:
        logger.info(
            "Expiration sweep: %d due, %d sold, %d expired, %d failed",
            report.due,
            len(report.sold),
            len(report.expired),
            len(report.failed),
        )
    return report
