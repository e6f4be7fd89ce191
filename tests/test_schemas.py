"""Test the auction state machine and domain models."""

import math
from datetime import timedelta
from uuid import uuid4

import pytest
from pydantic import ValidationError

from auctionmaster.core.exceptions import IllegalTransition
from auctionmaster.schemas import (
    Auction,
    AuctionStatus,
    Bid,
    Claim,
    ClaimReason,
    Failure,
    FailureCode,
    ItemPayload,
    Success,
)
from tests.fakes import START, make_item


def _auction(**kwargs) -> Auction:
    return Auction.open(
        seller_id=kwargs.pop("seller_id", uuid4()),
        seller_name="seller",
        item=make_item(),
        start_price=kwargs.pop("start_price", 10.0),
        duration=timedelta(hours=1),
        now=START,
        **kwargs,
    )


def test_open_auction_starts_active():
    auction = _auction()

    assert auction.status is AuctionStatus.ACTIVE
    assert auction.current_bid == 10.0
    assert auction.expires_at == START + timedelta(hours=1)
    assert auction.bid_count == 0
    assert not auction.has_bidder
    assert not auction.claimed


def test_transition_table():
    assert AuctionStatus.ACTIVE.can_transition_to(AuctionStatus.SOLD)
    assert AuctionStatus.ACTIVE.can_transition_to(AuctionStatus.EXPIRED)
    assert AuctionStatus.ACTIVE.can_transition_to(AuctionStatus.CANCELLED)
    assert not AuctionStatus.ACTIVE.can_transition_to(AuctionStatus.CLAIMED)
    assert AuctionStatus.SOLD.can_transition_to(AuctionStatus.CLAIMED)
    assert not AuctionStatus.SOLD.can_transition_to(AuctionStatus.ACTIVE)
    for target in AuctionStatus:
        assert not AuctionStatus.CLAIMED.can_transition_to(target)


def test_with_bid_updates_leader():
    auction = _auction()
    bidder = uuid4()
    bid = Bid(auction_id=auction.id, bidder_id=bidder, bidder_name="alice", amount=15.0)

    updated = auction.with_bid(bid)

    assert updated.current_bid == 15.0
    assert updated.current_bidder_id == bidder
    assert updated.bid_history == (bid,)
    # The source auction is untouched
    assert auction.current_bid == 10.0


def test_with_bid_rejects_non_increasing_amount():
    auction = _auction()
    bid = Bid(auction_id=auction.id, bidder_id=uuid4(), bidder_name="alice", amount=10.0)

    with pytest.raises(ValueError):
        auction.with_bid(bid)


def test_with_bid_on_settled_auction_is_illegal():
    auction = _auction().with_status(AuctionStatus.EXPIRED)
    bid = Bid(auction_id=auction.id, bidder_id=uuid4(), bidder_name="alice", amount=50.0)

    with pytest.raises(IllegalTransition):
        auction.with_bid(bid)


def test_claimed_sets_flag_and_is_final():
    auction = _auction().with_status(AuctionStatus.SOLD).with_claimed()

    assert auction.status is AuctionStatus.CLAIMED
    assert auction.claimed
    with pytest.raises(IllegalTransition):
        auction.with_status(AuctionStatus.CANCELLED)


def test_active_auction_cannot_be_claimed():
    with pytest.raises(IllegalTransition):
        _auction().with_claimed()


def test_buy_now_must_exceed_start_price():
    with pytest.raises(ValidationError):
        _auction(buy_now_price=10.0)


@pytest.mark.parametrize("buy_now_price", [math.nan, math.inf])
def test_buy_now_must_be_finite(buy_now_price):
    with pytest.raises(ValidationError):
        _auction(buy_now_price=buy_now_price)


@pytest.mark.parametrize("amount", [math.nan, math.inf])
def test_prices_must_be_finite(amount):
    with pytest.raises(ValidationError):
        _auction(start_price=amount)
    with pytest.raises(ValidationError):
        Bid(auction_id=uuid4(), bidder_id=uuid4(), bidder_name="alice", amount=amount)
    with pytest.raises(ValidationError):
        Claim(player_id=uuid4(), player_name="bob", money=amount, reason=ClaimReason.OUTBID_REFUND)


def test_expiry_is_inclusive():
    auction = _auction()

    assert auction.is_active(START)
    assert auction.is_expired(auction.expires_at)
    assert auction.time_remaining(auction.expires_at + timedelta(minutes=5)) == timedelta(0)


def test_seller_cannot_bid_on_own_auction():
    seller = uuid4()
    auction = _auction(seller_id=seller)

    assert not auction.can_player_bid(seller, START)
    assert auction.can_player_bid(uuid4(), START)


def test_item_display_string():
    assert ItemPayload(material="DIAMOND_SWORD").display_string() == "Diamond Sword"
    assert ItemPayload(material="STONE", display_name="Magic Rock").display_string() == "Magic Rock"


def test_claim_flags():
    claim = Claim(player_id=uuid4(), player_name="bob", money=5.0, reason=ClaimReason.OUTBID_REFUND)

    assert claim.has_money
    assert not claim.has_items


def test_failure_kind_and_retryable():
    failure = Failure(code=FailureCode.PERSISTENCE_ERROR, reason="try again")

    assert failure.kind == "persistence"
    assert failure.retryable
    assert Failure(code=FailureCode.BID_TOO_LOW, reason="low").kind == "validation"
    assert not Failure(code=FailureCode.BID_TOO_LOW, reason="low").retryable
    assert Success().ok
