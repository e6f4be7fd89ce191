# Background tasks
from auctionmaster.tasks.backup import run_backup
from auctionmaster.tasks.cache_refresh import run_cache_refresh
from auctionmaster.tasks.cleanup import run_cleanup
from auctionmaster.tasks.expiration import run_expiration_sweep
from auctionmaster.tasks.scheduler import AuctionScheduler

__all__ = [
    "AuctionScheduler",
    "run_backup",
    "run_cache_refresh",
    "run_cleanup",
    "run_expiration_sweep",
]
