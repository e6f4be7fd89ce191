# auctionmaster/tasks/cleanup.py
"""Background task body that deletes old finished auctions."""

import logging
from datetime import timedelta

from auctionmaster.services.auction_store import AuctionStore

logger = logging.getLogger(__name__)


async def run_cleanup(store: AuctionStore, older_than: timedelta) -> int:
    """
    Delete EXPIRED and CLAIMED auctions that ended more than ``older_than`` ago.

    SOLD and CANCELLED auctions still owe claims and are kept.
    """
    removed = await store.cleanup_expired(older_than)
    if removed:
        logger.info("Cleanup removed %d old auction(s)", removed)
    return removed
