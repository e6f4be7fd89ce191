"""Test the auction store: persistence, queries and the active cache."""

from datetime import timedelta
from uuid import uuid4

import pytest

from auctionmaster.core.exceptions import IllegalTransition, NotFoundError, PersistenceError
from auctionmaster.schemas import (
    Auction,
    AuctionCategory,
    AuctionFilter,
    AuctionStatus,
    Bid,
    SortOrder,
)
from tests.fakes import make_item


async def _create(store, clock, seller_id=None, price=10.0, material="DIAMOND_SWORD", **kwargs):
    auction = Auction.open(
        seller_id=seller_id or uuid4(),
        seller_name="seller",
        item=make_item(material),
        start_price=price,
        duration=kwargs.pop("duration", timedelta(hours=1)),
        now=clock(),
        **kwargs,
    )
    clock.advance(seconds=1)
    return await store.create(auction)


def _bid(auction, amount, bidder_id=None):
    return Bid(
        auction_id=auction.id,
        bidder_id=bidder_id or uuid4(),
        bidder_name="bidder",
        amount=amount,
    )


async def test_create_and_load(store, clock):
    """Test storing an auction and reading it back from storage."""
    auction = await _create(store, clock, category=AuctionCategory.WEAPONS)

    loaded = await store.load(auction.id)

    assert loaded == auction
    assert loaded.expires_at.tzinfo is not None
    assert loaded.duration == timedelta(hours=1)


async def test_create_caches_active_auction(store, cache, clock):
    auction = await _create(store, clock)

    assert await cache.get(auction.id) == auction
    assert await store.get(auction.id) == auction


async def test_settled_auction_is_evicted(store, cache, clock):
    auction = await _create(store, clock)

    await store.update(auction.with_status(AuctionStatus.EXPIRED))

    assert await cache.get(auction.id) is None
    assert (await store.get(auction.id)).status is AuctionStatus.EXPIRED


async def test_update_appends_bids(store, clock):
    auction = await _create(store, clock)
    first = auction.with_bid(_bid(auction, 15.0))
    await store.update(first)
    second = first.with_bid(_bid(first, 20.0))
    await store.update(second)

    loaded = await store.load(auction.id)
    history = await store.bid_history(auction.id)

    assert loaded.current_bid == 20.0
    assert [b.amount for b in loaded.bid_history] == [15.0, 20.0]
    assert [b.amount for b in history] == [20.0, 15.0]


async def test_update_refuses_to_rewrite_history(store, clock):
    auction = await _create(store, clock)
    await store.update(auction.with_bid(_bid(auction, 15.0)))

    # Built from the stale copy: the stored bid is missing from its history
    stale = auction.with_bid(_bid(auction, 30.0))

    with pytest.raises(PersistenceError):
        await store.update(stale)


async def test_update_unknown_auction(store, clock):
    auction = Auction.open(
        seller_id=uuid4(),
        seller_name="ghost",
        item=make_item(),
        start_price=10.0,
        duration=timedelta(hours=1),
        now=clock(),
    )

    with pytest.raises(NotFoundError):
        await store.update(auction)


async def test_failed_transaction_leaves_cache_untouched(store, cache, clock):
    auction = await _create(store, clock)

    with pytest.raises(RuntimeError):
        async with store.transaction() as session:
            await store.update(auction.with_status(AuctionStatus.CANCELLED), session)
            raise RuntimeError("boom")

    assert (await store.load(auction.id)).status is AuctionStatus.ACTIVE
    assert await cache.get(auction.id) == auction


async def test_query_filters(store, clock):
    seller = uuid4()
    sword = await _create(store, clock, seller_id=seller, price=50.0, category=AuctionCategory.WEAPONS)
    await _create(store, clock, price=5.0, material="COBBLESTONE", category=AuctionCategory.BLOCKS)
    await _create(store, clock, price=500.0, material="GOLDEN_APPLE", category=AuctionCategory.FOOD)

    by_category = await store.query(AuctionFilter(category=AuctionCategory.WEAPONS))
    by_seller = await store.query(AuctionFilter.for_seller(seller))
    by_text = await store.query(AuctionFilter(search_text="Diamond"))
    by_price = await store.query(AuctionFilter(min_price=10.0, max_price=100.0))

    assert [a.id for a in by_category] == [sword.id]
    assert [a.id for a in by_seller] == [sword.id]
    assert [a.id for a in by_text] == [sword.id]
    assert [a.id for a in by_price] == [sword.id]


async def test_query_by_bidder(store, clock):
    bidder = uuid4()
    first = await _create(store, clock)
    await _create(store, clock)
    await store.update(first.with_bid(_bid(first, 15.0, bidder_id=bidder)))

    result = await store.query(AuctionFilter.for_bidder(bidder))

    assert [a.id for a in result] == [first.id]


async def test_query_sorting_and_pagination(store, clock):
    cheap = await _create(store, clock, price=5.0, duration=timedelta(hours=3))
    mid = await _create(store, clock, price=50.0, duration=timedelta(hours=1))
    pricey = await _create(store, clock, price=500.0, duration=timedelta(hours=2))
    await store.update(mid.with_bid(_bid(mid, 60.0)))
    mid = await store.load(mid.id)
    await store.update(mid.with_bid(_bid(mid, 70.0)))
    await store.update(cheap.with_bid(_bid(cheap, 10.0)))

    async def ids(sort_order, **kwargs):
        return [a.id for a in await store.query(AuctionFilter(sort_order=sort_order, **kwargs))]

    assert await ids(SortOrder.NEWEST) == [pricey.id, mid.id, cheap.id]
    assert await ids(SortOrder.OLDEST) == [cheap.id, mid.id, pricey.id]
    assert await ids(SortOrder.PRICE_LOW) == [cheap.id, mid.id, pricey.id]
    assert await ids(SortOrder.PRICE_HIGH) == [pricey.id, mid.id, cheap.id]
    assert await ids(SortOrder.ENDING_SOON) == [mid.id, pricey.id, cheap.id]
    assert await ids(SortOrder.MOST_BIDS) == [mid.id, cheap.id, pricey.id]
    assert await ids(SortOrder.OLDEST, limit=1, offset=1) == [mid.id]


async def test_count_and_due(store, clock):
    seller = uuid4()
    await _create(store, clock, seller_id=seller, duration=timedelta(hours=1))
    later = await _create(store, clock, seller_id=seller, duration=timedelta(hours=5))

    assert await store.count_active_by_seller(seller) == 2

    clock.advance(hours=2)
    due = await store.due_for_expiration()

    assert len(due) == 1
    assert due[0].id != later.id


async def test_delete_requires_force_for_active(store, cache, clock):
    auction = await _create(store, clock)

    with pytest.raises(IllegalTransition):
        await store.delete(auction.id)

    assert await store.delete(auction.id, force=True)
    assert await store.load(auction.id) is None
    assert await cache.get(auction.id) is None
    assert not await store.delete(auction.id, force=True)


async def test_cleanup_removes_only_old_finished(store, clock):
    expired = await _create(store, clock)
    sold = await _create(store, clock)
    await store.update(expired.with_status(AuctionStatus.EXPIRED))
    sold = sold.with_bid(_bid(sold, 20.0))
    await store.update(sold.with_status(AuctionStatus.SOLD))

    clock.advance(days=10)
    assert await store.cleanup_expired(timedelta(days=30)) == 0

    clock.advance(days=25)
    assert await store.cleanup_expired(timedelta(days=30)) == 1
    assert await store.load(expired.id) is None
    assert await store.load(sold.id) is not None


async def test_reload_cache(store, cache, clock):
    active = await _create(store, clock)
    done = await _create(store, clock)
    await store.update(done.with_status(AuctionStatus.CANCELLED))
    await store.invalidate_cache()
    assert await cache.size() == 0

    assert await store.reload_cache() == 1
    assert await cache.get(active.id) == active
    assert await cache.get(done.id) is None


async def test_reload_cache_drops_auctions_settled_meanwhile(store, cache, clock, monkeypatch):
    """A settlement landing mid-reload does not leave a stale ACTIVE copy cached"""
    kept = await _create(store, clock)
    settled = await _create(store, clock)
    read_active = store.active_auctions

    async def snapshot_then_settle():
        snapshot = await read_active()
        await store.update(settled.with_status(AuctionStatus.CANCELLED))
        return snapshot

    monkeypatch.setattr(store, "active_auctions", snapshot_then_settle)

    assert await store.reload_cache() == 1
    assert await cache.get(kept.id) == kept
    assert await cache.get(settled.id) is None


async def test_restore_skips_existing(store, clock):
    auction = await _create(store, clock)

    assert not await store.restore(auction)

    await store.delete(auction.id, force=True)
    assert await store.restore(auction)
    assert await store.load(auction.id) == auction
