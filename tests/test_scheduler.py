"""Test the expiration sweep and the scheduler loops."""

import asyncio
from datetime import timedelta

import pytest

from auctionmaster.core.exceptions import PersistenceError
from auctionmaster.schemas import AuctionStatus, FailureCode, Failure
from auctionmaster.tasks import AuctionScheduler, run_expiration_sweep


@pytest.fixture
def scheduler(store, service, backups, config, tmp_path):
    fast = config.model_copy(
        update={
            "EXPIRATION_INTERVAL_SECONDS": 0.01,
            "BACKUP_DIR": str(tmp_path / "backups"),
        }
    )
    return AuctionScheduler(store, service, backups, config=fast)


async def test_sweep_settles_due_auctions(store, service, clock, open_auction, alice):
    sold = await open_auction()
    unsold = await open_auction()
    running = await open_auction(duration=timedelta(hours=5))
    await service.place_bid(sold.id, alice, "alice", 25.0)
    clock.advance(hours=2)

    report = await run_expiration_sweep(store, service)

    assert report.due == 2
    assert report.sold == [sold.id]
    assert report.expired == [unsold.id]
    assert report.failed == []
    assert (await store.load(running.id)).status is AuctionStatus.ACTIVE


async def test_sweep_failures_are_independent(store, service, clock, open_auction, monkeypatch):
    broken = await open_auction()
    fine = await open_auction()
    clock.advance(hours=2)
    original = service.expire_auction

    async def flaky(auction_id):
        if auction_id == broken.id:
            return Failure(code=FailureCode.PERSISTENCE_ERROR, reason="try again")
        return await original(auction_id)

    monkeypatch.setattr(service, "expire_auction", flaky)

    report = await run_expiration_sweep(store, service)

    assert report.failed == [broken.id]
    assert report.expired == [fine.id]
    assert (await store.load(broken.id)).status is AuctionStatus.ACTIVE

    monkeypatch.setattr(service, "expire_auction", original)
    retry = await run_expiration_sweep(store, service)
    assert retry.expired == [broken.id]


async def test_sweep_survives_storage_outage(store, service, monkeypatch):
    async def offline(now=None):
        raise PersistenceError("offline")

    monkeypatch.setattr(store, "due_for_expiration", offline)

    report = await run_expiration_sweep(store, service)

    assert report.due == 0


async def test_manual_triggers(scheduler, store, cache, clock, open_auction, tmp_path):
    auction = await open_auction()
    await store.invalidate_cache()

    assert await scheduler.trigger_cache_refresh() == 1
    assert await cache.get(auction.id) is not None

    path = await scheduler.trigger_backup()
    assert path.parent == tmp_path / "backups"

    clock.advance(hours=1)
    report = await scheduler.trigger_expiration_check()
    assert report.expired == [auction.id]

    clock.advance(days=31)
    assert await scheduler.trigger_cleanup() == 1


async def test_start_and_stop(scheduler, store, clock, open_auction):
    auction = await open_auction()
    clock.advance(hours=1)

    scheduler.start()
    assert scheduler.running
    for _ in range(100):
        if (await store.load(auction.id)).status is AuctionStatus.EXPIRED:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop(timeout=5)

    assert not scheduler.running
    assert (await store.load(auction.id)).status is AuctionStatus.EXPIRED


async def test_loop_keeps_running_after_error(scheduler, monkeypatch):
    calls = []

    async def failing():
        calls.append(1)
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler, "trigger_expiration_check", failing)

    scheduler.start()
    for _ in range(100):
        if len(calls) >= 3:
            break
        await asyncio.sleep(0.01)
    await scheduler.stop(timeout=5)

    assert len(calls) >= 3
