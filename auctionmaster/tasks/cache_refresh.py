# auctionmaster/tasks/cache_refresh.py
"""Background task body that rebuilds the active auction cache from storage."""

import logging

from auctionmaster.services.auction_store import AuctionStore

logger = logging.getLogger(__name__)


async def run_cache_refresh(store: AuctionStore) -> int:
    count = await store.reload_cache()
    logger.debug("Auction cache refreshed with %d active auction(s)", count)
    return count
