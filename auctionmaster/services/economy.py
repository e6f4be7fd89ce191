# auctionmaster/services/economy.py
"""
Ports to the world outside the engine.

The economy provider and the inventory that receives items are owned by the
host application; the engine only talks to them through these protocols.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from uuid import UUID

from auctionmaster.schemas.item import ItemPayload


@runtime_checkable
class EconomyPort(Protocol):
    """Balance bookkeeping for online and offline players"""

    def is_available(self) -> bool: ...

    async def get_balance(self, player_id: UUID) -> float: ...

    async def withdraw(self, player_id: UUID, amount: float) -> bool: ...

    async def deposit(self, player_id: UUID, amount: float) -> bool: ...


@runtime_checkable
class ItemReceiver(Protocol):
    """Hands items to a player who is reachable right now"""

    async def can_receive(self, player_id: UUID, items: Sequence[ItemPayload]) -> bool: ...

    async def give_items(self, player_id: UUID, items: Sequence[ItemPayload]) -> bool: ...
