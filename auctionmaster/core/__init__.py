# Core modules
from auctionmaster.core.config import Settings, settings
from auctionmaster.core.database import Base, Database
from auctionmaster.core.locks import KeyedLock
from auctionmaster.core.redis import RedisClient

__all__ = [
    "settings",
    "Settings",
    "Base",
    "Database",
    "KeyedLock",
    "RedisClient",
]
