"""Test JSON backups: snapshot, retention and restore."""

import json
import os

import pytest

from auctionmaster.core.database import Database
from auctionmaster.core.exceptions import NotFoundError
from auctionmaster.schemas import BackupData
from auctionmaster.services.auction_cache import InMemoryAuctionCache
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.backup_service import JsonBackupService
from auctionmaster.services.claims_ledger import ClaimsLedger


async def _populate(service, open_auction, alice, bob):
    auction = await open_auction()
    await service.place_bid(auction.id, alice, "alice", 15.0)
    await service.place_bid(auction.id, bob, "bob", 20.0)
    await open_auction(start_price=30.0)
    return auction


async def test_backup_contents(backups, service, open_auction, alice, bob, tmp_path):
    auction = await _populate(service, open_auction, alice, bob)

    path = await backups.create_backup(tmp_path / "backups")

    assert path.name == "auction-backup-2026-01-01_12-00-00_000000.json"
    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["version"] == "1.0"
    data = BackupData.model_validate(raw)
    assert len(data.auctions) == 2
    assert sorted(b.amount for b in data.bids) == [15.0, 20.0]
    assert all(b.auction_id == auction.id for b in data.bids)
    assert [c.money for c in data.claims] == [15.0]


async def test_restore_into_empty_storage(
    backups, service, store, ledger, open_auction, alice, bob, tmp_path
):
    auction = await _populate(service, open_auction, alice, bob)
    path = await backups.create_backup(tmp_path)

    await store.delete(auction.id, force=True)
    [claim] = await ledger.get_claims(alice)
    await ledger.delete_claim(claim.id)
    await store.invalidate_cache()

    report = await backups.restore_backup(path)

    assert report.auctions_restored == 1
    assert report.auctions_skipped == 1
    assert report.claims_restored == 1
    restored = await store.load(auction.id)
    assert [b.amount for b in restored.bid_history] == [15.0, 20.0]
    assert restored.current_bidder_id == bob
    assert await store.cache.get(auction.id) == restored
    assert [c.money for c in await ledger.get_claims(alice)] == [15.0]


async def test_round_trip_reproduces_every_record(
    backups, service, store, ledger, open_auction, clock, seller, alice, bob, tmp_path
):
    """Restoring into fresh storage yields identical auctions and claims"""
    await _populate(service, open_auction, alice, bob)
    cancelled = await open_auction(start_price=50.0)
    await service.place_bid(cancelled.id, alice, "alice", 60.0)
    await service.cancel_auction(cancelled.id, seller)
    auctions = await store.all_auctions()
    claims = await ledger.all_claims()
    path = await backups.create_backup(tmp_path / "backups")

    fresh = Database(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
    await fresh.create_all()
    try:
        fresh_store = AuctionStore(fresh, InMemoryAuctionCache(), clock=clock)
        fresh_ledger = ClaimsLedger(fresh)
        restorer = JsonBackupService(fresh_store, fresh_ledger, clock=clock)

        report = await restorer.restore_backup(path)

        assert report.auctions_restored == len(auctions) == 3
        assert report.claims_restored == len(claims)
        assert await fresh_store.all_auctions() == auctions
        assert await fresh_ledger.all_claims() == claims
    finally:
        await fresh.dispose()


async def test_restore_missing_file(backups, tmp_path):
    with pytest.raises(NotFoundError):
        await backups.restore_backup(tmp_path / "nope.json")


async def test_old_backups_are_pruned(backups, clock, tmp_path):
    paths = []
    for i in range(5):
        path = await backups.create_backup(tmp_path)
        os.utime(path, (1_000_000 + i, 1_000_000 + i))
        paths.append(path)
        clock.advance(minutes=1)

    available = await backups.available_backups(tmp_path)

    assert len(available) == 3
    assert available[0] == paths[-1]
    assert not paths[0].exists()


async def test_export_auction(backups, open_auction, tmp_path):
    auction = await open_auction()

    path = await backups.export_auction(auction, tmp_path)

    assert path.name == f"auction-{auction.id}.json"
    assert json.loads(path.read_text(encoding="utf-8"))["id"] == str(auction.id)
