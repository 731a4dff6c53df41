"""
bids.py - Bid Book

Per-item unordered collection of open bids, stored as a tuple of Bid records
in MarketState.bids.

Identity: the legacy operations target the first bid matching
(bidder, price). Several bids with the same bidder and price are allowed and
indistinguishable to those operations. Each bid also carries a stable bid_id
used by the handle-based operations.

Removal swaps the last bid into the removed slot and shrinks the collection,
so book order is insertion order only until the first removal.

Funds are not escrowed: submission checks the bidder's live balance and the
allowance granted to the marketplace, and acceptance re-derives success from
the currency ledger's transfer result.
"""

from __future__ import annotations
from typing import Optional, Tuple

from .core import (
    Principal,
    BidTooLow, InsufficientFundsOrAllowance, InvalidArgument,
    CurrencyLedger,
)
from .listing import require_amount, require_item, require_open
from .notifications import NotificationKind
from .records import Bid, MarketState, TransactionScope


def has_funds(currency: CurrencyLedger, spender: Principal, principal: Principal, amount: int) -> bool:
    """Balance and allowance granted to spender both cover amount."""
    return (
        currency.balance_of(principal) >= amount
        and currency.allowance(principal, spender) >= amount
    )


def open_bids(state: MarketState, item_id: int) -> Tuple[Bid, ...]:
    require_item(state, item_id)
    return state.bids.get(item_id, ())


def find_bid(bids: Tuple[Bid, ...], bidder: Principal, price: int) -> Optional[int]:
    """Index of the first bid matching (bidder, price), or None."""
    for index, bid in enumerate(bids):
        if bid.bidder == bidder and bid.price == price:
            return index
    return None


def find_bid_by_id(bids: Tuple[Bid, ...], bid_id: int) -> Optional[int]:
    for index, bid in enumerate(bids):
        if bid.bid_id == bid_id:
            return index
    return None


def remove_bid_at(state: MarketState, item_id: int, index: int) -> Bid:
    """Swap-with-last-and-shrink removal. Order of remaining bids is not preserved."""
    bids = list(state.bids[item_id])
    removed = bids[index]
    bids[index] = bids[-1]
    bids.pop()
    state.bids[item_id] = tuple(bids)
    return removed


def submit_bid(scope: TransactionScope, caller: Principal, item_id: int, price: int) -> Bid:
    """
    Record an open bid on a live, unsold item.

    Raises:
        ItemNotFound, ItemAlreadySold, ItemNotLive: Item not open for bids.
        InvalidArgument: Non-positive price, or the owner-of-record bidding.
        BidTooLow: price < item.min_price.
        InsufficientFundsOrAllowance: Balance or allowance below price.
    """
    state = scope.state
    item = require_item(state, item_id)
    require_open(item)
    require_amount(price, "price", positive=True)
    if caller == item.owner:
        raise InvalidArgument(f"{caller} cannot bid on their own item {item_id}")
    if price < item.min_price:
        raise BidTooLow(
            f"Bid {price} is below the minimum price {item.min_price} of item {item_id}"
        )
    if not has_funds(scope.currency, scope.config.spender, caller, price):
        raise InsufficientFundsOrAllowance(
            f"{caller} lacks the balance or allowance for a bid of {price}"
        )

    bid = Bid(bidder=caller, price=price, bid_id=state.next_bid_id)
    state.next_bid_id += 1
    state.bids[item_id] = state.bids.get(item_id, ()) + (bid,)
    scope.emit(NotificationKind.BID_SUBMITTED, item_id, bidder=caller, price=price, bid_id=bid.bid_id)
    return bid


def cancel_bid(scope: TransactionScope, caller: Principal, item_id: int, price: int) -> bool:
    """
    Remove the caller's first bid at price.

    Returns:
        True if a bid was removed, False (no error, no notification) if the
        caller has no bid at that price or the item id is unknown.
    """
    state = scope.state
    index = find_bid(state.bids.get(item_id, ()), caller, price)
    if index is None:
        return False
    removed = remove_bid_at(state, item_id, index)
    scope.emit(NotificationKind.BID_CANCELLED, item_id, bidder=caller, price=price, bid_id=removed.bid_id)
    return True


def cancel_bid_by_id(scope: TransactionScope, caller: Principal, item_id: int, bid_id: int) -> bool:
    """Handle-based cancel. Only the bidder may cancel; unknown handles are a no-op."""
    require_bid_handles(scope)
    state = scope.state
    index = find_bid_by_id(state.bids.get(item_id, ()), bid_id)
    if index is None or state.bids[item_id][index].bidder != caller:
        return False
    removed = remove_bid_at(state, item_id, index)
    scope.emit(
        NotificationKind.BID_CANCELLED, item_id,
        bidder=caller, price=removed.price, bid_id=removed.bid_id,
    )
    return True


def require_bid_handles(scope: TransactionScope) -> None:
    if not scope.config.stable_bid_handles:
        raise InvalidArgument("bid handles are disabled; enable MarketplaceConfig.stable_bid_handles")
