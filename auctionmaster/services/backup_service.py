# auctionmaster/services/backup_service.py
"""
JSON backup and restore of auctions and pending claims.

A backup is a single ``BackupData`` document. File system access runs in a
worker thread so the event loop keeps serving bids while a backup is written.
"""

import asyncio
import logging
from pathlib import Path

from pydantic import ValidationError

from auctionmaster.core.clock import Clock, utc_now
from auctionmaster.core.exceptions import NotFoundError, PersistenceError
from auctionmaster.schemas.auction import Auction, Bid
from auctionmaster.schemas.backup import BackupData, RestoreReport
from auctionmaster.services.auction_store import AuctionStore
from auctionmaster.services.claims_ledger import ClaimsLedger

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "auction-backup-"
BACKUP_SUFFIX = ".json"


def backup_filename(timestamp) -> str:
    return f"{BACKUP_PREFIX}{timestamp.strftime('%Y-%m-%d_%H-%M-%S_%f')}{BACKUP_SUFFIX}"


def _list_backups(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    files = [p for p in directory.glob(f"{BACKUP_PREFIX}*{BACKUP_SUFFIX}") if p.is_file()]
    # Newest first; the name carries the timestamp and breaks mtime ties
    return sorted(files, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)


def _write(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(payload, encoding="utf-8")
    tmp.replace(path)


class JsonBackupService:
    def __init__(
        self,
        store: AuctionStore,
        ledger: ClaimsLedger,
        keep_count: int = 30,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.ledger = ledger
        self.keep_count = keep_count
        self._clock = clock

    async def snapshot(self) -> BackupData:
        auctions = await self.store.all_auctions()
        claims = await self.ledger.all_claims()

        bids: dict = {}
        for auction in auctions:
            for bid in auction.bid_history:
                bids.setdefault(bid.id, bid)

        return BackupData(
            timestamp=self._clock(),
            auctions=auctions,
            bids=list(bids.values()),
            claims=claims,
        )

    async def create_backup(self, directory: str | Path) -> Path:
        """Write a full snapshot into ``directory`` and prune old backups"""
        directory = Path(directory)
        data = await self.snapshot()
        path = directory / backup_filename(data.timestamp)

        try:
            await asyncio.to_thread(_write, path, data.model_dump_json(indent=2))
        except OSError as e:
            raise PersistenceError(f"Could not write backup {path}: {e}") from e

        logger.info(
            "Backup written to %s (%d auctions, %d bids, %d claims)",
            path,
            len(data.auctions),
            len(data.bids),
            len(data.claims),
        )
        await self._clean_old_backups(directory)
        return path

    async def _clean_old_backups(self, directory: Path) -> int:
        backups = await asyncio.to_thread(_list_backups, directory)
        removed = 0
        for old in backups[self.keep_count:]:
            try:
                await asyncio.to_thread(old.unlink)
                removed += 1
            except OSError as e:
                logger.warning("Could not delete old backup %s: %s", old, e)
        if removed:
            logger.info("Removed %d old backup(s) from %s", removed, directory)
        return removed

    async def restore_backup(self, file: str | Path) -> RestoreReport:
        """
        Load a backup file back into storage.

        Auctions and claims whose id is already present are left untouched.
        Bids come back through the history embedded in each auction.
        """
        path = Path(file)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise NotFoundError("Backup", str(path)) from e
        except OSError as e:
            raise PersistenceError(f"Could not read backup {path}: {e}") from e

        try:
            data = BackupData.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Backup {path} is not a valid backup file: {e}") from e

        report = RestoreReport()
        for auction in data.auctions:
            auction = self._with_bids(auction, data.bids)
            if await self.store.restore(auction):
                report.auctions_restored += 1
            else:
                report.auctions_skipped += 1

        for claim in data.claims:
            if await self.ledger.restore(claim):
                report.claims_restored += 1
            else:
                report.claims_skipped += 1

        await self.store.reload_cache()
        logger.info("Restored backup %s: %s", path, report.model_dump())
        return report

    @staticmethod
    def _with_bids(auction: Auction, bids: list[Bid]) -> Auction:
        """Fill an empty embedded history from the flat bid list"""
        if auction.bid_history:
            return auction
        own = [b for b in bids if b.auction_id == auction.id]
        if not own:
            return auction
        own.sort(key=lambda b: (b.timestamp, b.amount))
        return auction.model_copy(update={"bid_history": tuple(own)})

    async def available_backups(self, directory: str | Path) -> list[Path]:
        """Backup files in ``directory``, newest first"""
        return await asyncio.to_thread(_list_backups, Path(directory))

    async def export_auction(self, auction: Auction, directory: str | Path) -> Path:
        path = Path(directory) / f"auction-{auction.id}.json"
        try:
            await asyncio.to_thread(_write, path, auction.model_dump_json(indent=2))
        except OSError as e:
            raise PersistenceError(f"Could not export auction {auction.id}: {e}") from e
        logger.info("Exported auction %s to %s", auction.id, path)
        return path
