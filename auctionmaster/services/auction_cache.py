# auctionmaster/services/auction_cache.py
"""
Read-through caches for ACTIVE auctions.

The cache is derived data: storage stays authoritative and every engine
operation is correct with ``NullAuctionCache``.
"""

import logging
from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from redis.asyncio import Redis

from auctionmaster.schemas.auction import Auction

logger = logging.getLogger(__name__)


class AuctionCache(Protocol):
    async def get(self, auction_id: UUID) -> Auction | None: ...

    async def put(self, auction: Auction) -> None: ...

    async def evict(self, auction_id: UUID) -> None: ...

    async def replace_all(self, auctions: Iterable[Auction]) -> None: ...

    async def clear(self) -> None: ...

    async def size(self) -> int: ...


class InMemoryAuctionCache:
    """Per-process dict cache (auction id -> Auction)"""

    def __init__(self) -> None:
        self._store: dict[UUID, Auction] = {}

    async def get(self, auction_id: UUID) -> Auction | None:
        return self._store.get(auction_id)

    async def put(self, auction: Auction) -> None:
        self._store[auction.id] = auction

    async def evict(self, auction_id: UUID) -> None:
        self._store.pop(auction_id, None)

    async def replace_all(self, auctions: Iterable[Auction]) -> None:
        # Swap in a new dict so readers never see a half-filled cache
        self._store = {auction.id: auction for auction in auctions}

    async def clear(self) -> None:
        self._store = {}

    async def size(self) -> int:
        return len(self._store)


class RedisAuctionCache:
    """Cache stored as one Redis hash of JSON documents keyed by auction id"""

    def __init__(self, redis: Redis, key: str = "auctions:active"):
        self.redis = redis
        self.key = key

    async def get(self, auction_id: UUID) -> Auction | None:
        cached = await self.redis.hget(self.key, str(auction_id))
        if not cached:
            return None
        return Auction.model_validate_json(cached)

    async def put(self, auction: Auction) -> None:
        await self.redis.hset(self.key, str(auction.id), auction.model_dump_json())

    async def evict(self, auction_id: UUID) -> None:
        await self.redis.hdel(self.key, str(auction_id))

    async def replace_all(self, auctions: Iterable[Auction]) -> None:
        mapping = {str(a.id): a.model_dump_json() for a in auctions}
        pipe = self.redis.pipeline()
        pipe.delete(self.key)
        if mapping:
            pipe.hset(self.key, mapping=mapping)
        await pipe.execute()

    async def clear(self) -> None:
        await self.redis.delete(self.key)

    async def size(self) -> int:
        return await self.redis.hlen(self.key)


class NullAuctionCache:
    """Cache disabled: every read falls through to storage"""

    async def get(self, auction_id: UUID) -> Auction | None:
        return None

    async def put(self, auction: Auction) -> None:
        return None

    async def evict(self, auction_id: UUID) -> None:
        return None

    async def replace_all(self, auctions: Iterable[Auction]) -> None:
        return None

    async def clear(self) -> None:
        return None

    async def size(self) -> int:
        return 0


def build_cache(backend: str, redis: Redis | None = None, key: str = "auctions:active") -> AuctionCache:
    """Pick the cache implementation named by AUCTION_CACHE_BACKEND"""
    backend = backend.lower()
    if backend == "memory":
        return InMemoryAuctionCache()
    if backend == "redis":
        if redis is None:
            raise ValueError("Redis cache backend selected but no Redis client given")
        return RedisAuctionCache(redis, key=key)
    if backend == "none":
        return NullAuctionCache()
    raise ValueError(f"Unknown auction cache backend: {backend}")
