"""Test the claims ledger."""

from datetime import timedelta
from uuid import uuid4

import pytest

from auctionmaster.core.exceptions import NotFoundError
from auctionmaster.schemas import Claim, ClaimReason
from tests.fakes import START, make_item


def _claim(player_id, minutes=0, **kwargs):
    return Claim(
        player_id=player_id,
        player_name="player",
        reason=kwargs.pop("reason", ClaimReason.OUTBID_REFUND),
        timestamp=START + timedelta(minutes=minutes),
        **kwargs,
    )


async def test_claims_are_queued_oldest_first(ledger):
    player = uuid4()
    late = await ledger.add_claim(_claim(player, minutes=5, money=20.0))
    early = await ledger.add_claim(_claim(player, minutes=1, money=10.0))
    await ledger.add_claim(_claim(uuid4(), money=99.0))

    claims = await ledger.get_claims(player)

    assert [c.id for c in claims] == [early.id, late.id]


async def test_items_round_trip(ledger):
    player = uuid4()
    item = make_item("ENCHANTED_BOOK", display_name="Sharpness", enchantments={"SHARPNESS": 5})
    claim = await ledger.add_claim(
        _claim(player, items=(item,), reason=ClaimReason.AUCTION_WON, auction_id=uuid4())
    )

    loaded = await ledger.get_claim(claim.id)

    assert loaded == claim
    assert loaded.items[0].enchantments == {"SHARPNESS": 5}


async def test_delete_is_detected_once(ledger):
    claim = await ledger.add_claim(_claim(uuid4(), money=5.0))

    assert await ledger.delete_claim(claim.id)
    assert not await ledger.delete_claim(claim.id)
    assert await ledger.get_claim(claim.id) is None


async def test_split_claim(ledger):
    player = uuid4()
    auction_id = uuid4()
    claim = await ledger.add_claim(
        _claim(
            player,
            items=(make_item(),),
            money=30.0,
            reason=ClaimReason.AUCTION_CANCELLED,
            auction_id=auction_id,
        )
    )

    items_part, money_part = await ledger.split_claim(claim)
    stored = {c.id: c for c in await ledger.get_claims(player)}

    assert items_part.id == claim.id
    assert money_part.id != claim.id
    assert set(stored) == {claim.id, money_part.id}
    assert stored[claim.id].items == claim.items
    assert stored[claim.id].money == 0.0
    assert stored[money_part.id].items == ()
    assert stored[money_part.id].money == 30.0
    assert stored[money_part.id].reason is ClaimReason.AUCTION_CANCELLED
    assert await ledger.pending_for_auction(auction_id) == 2


async def test_split_missing_claim(ledger):
    """Nothing is written when the claim is already gone"""
    claim = _claim(uuid4(), items=(make_item(),), money=1.0)

    with pytest.raises(NotFoundError):
        await ledger.split_claim(claim)
    assert await ledger.all_claims() == []


async def test_pending_for_auction(ledger):
    auction_id = uuid4()
    await ledger.add_claim(_claim(uuid4(), money=5.0, auction_id=auction_id))
    other = await ledger.add_claim(_claim(uuid4(), money=5.0, auction_id=auction_id))
    await ledger.add_claim(_claim(uuid4(), money=5.0))

    assert await ledger.pending_for_auction(auction_id) == 2
    await ledger.delete_claim(other.id)
    assert await ledger.pending_for_auction(auction_id) == 1


async def test_restore_skips_existing(ledger):
    claim = await ledger.add_claim(_claim(uuid4(), money=5.0))

    assert not await ledger.restore(claim)
    await ledger.delete_claim(claim.id)
    assert await ledger.restore(claim)
    assert len(await ledger.all_claims()) == 1
