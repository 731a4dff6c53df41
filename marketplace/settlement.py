"""
settlement.py - Settlement Engine

Executes the two sale paths against the external collaborators:

    buy_now:    buyer -> seller        (price - commission)
                buyer -> recipient     (commission, skipped when 0)
                asset seller -> buyer

    accept_bid: bidder -> seller       (price - commission)
                bidder -> recipient    (commission, skipped when 0)
                asset seller -> bidder

The registry must still report the owner-of-record as holder before any
currency moves; otherwise SettlementFailed is raised with nothing pulled.
Currency is pulled through the allowance the payer granted to the
marketplace spender. A pull that returns False raises
InsufficientFundsOrAllowance; any error from the asset registry raises
SettlementFailed. Either way the enclosing transaction scope rolls back every
collaborator and discards the working state, so a sale is all-or-nothing.
"""

from __future__ import annotations
from typing import Optional, Tuple

from .core import (
    Principal, COMMISSION_DENOMINATOR,
    BuyNowDisabled, WrongTenderAmount, InvalidArgument,
    InsufficientFundsOrAllowance, SettlementFailed,
)
from .bids import find_bid, find_bid_by_id, has_funds, remove_bid_at, require_bid_handles
from .listing import close_as_sold, require_item, require_open, require_owner
from .notifications import NotificationKind
from .records import ListedItem, Sale, TransactionScope


def compute_commission_split(price: int, percent: int) -> Tuple[int, int]:
    """
    Split a sale price between seller and commission recipient.

    Commission rounds down, so the seller receives the remainder and
    seller_proceeds + commission == price always holds.

    Returns:
        (seller_proceeds, commission)
    """
    commission = price * percent // COMMISSION_DENOMINATOR
    return price - commission, commission


def _pull(scope: TransactionScope, payer: Principal, dest: Principal, amount: int) -> None:
    if amount == 0 or payer == dest:
        return
    if not scope.currency.transfer_from(payer, scope.config.spender, dest, amount):
        raise InsufficientFundsOrAllowance(
            f"Could not pull {amount} from {payer} to {dest}"
        )


def _deliver_asset(scope: TransactionScope, item: ListedItem, dest: Principal) -> None:
    asset = item.asset
    try:
        scope.assets.transfer(asset.collection, asset.instance, asset.owner, dest)
    except Exception as e:
        raise SettlementFailed(
            f"Asset transfer of {asset.collection}#{asset.instance} "
            f"from {asset.owner} to {dest} failed: {e}"
        ) from e


def _verify_holder(scope: TransactionScope, item: ListedItem) -> None:
    asset = item.asset
    try:
        holder = scope.assets.owner_of(asset.collection, asset.instance)
    except Exception as e:
        raise SettlementFailed(
            f"Could not read the owner of {asset.collection}#{asset.instance}: {e}"
        ) from e
    if holder != asset.owner:
        raise SettlementFailed(
            f"{asset.collection}#{asset.instance} is held by {holder}, "
            f"not by owner-of-record {asset.owner}"
        )


def _settle(scope: TransactionScope, item: ListedItem, buyer: Principal, price: int, via: str) -> Sale:
    policy = scope.state.policy
    seller = item.owner
    seller_proceeds, commission = compute_commission_split(price, policy.commission_percent)

    _verify_holder(scope, item)
    _pull(scope, buyer, seller, seller_proceeds)
    _pull(scope, buyer, policy.commission_recipient, commission)
    _deliver_asset(scope, item, buyer)

    return Sale(
        item_id=item.item_id,
        collection=item.asset.collection,
        instance=item.asset.instance,
        seller=seller,
        buyer=buyer,
        price=price,
        commission=commission,
        seller_proceeds=seller_proceeds,
        via=via,
    )


def buy_now(scope: TransactionScope, caller: Principal, item_id: int, tendered: int) -> Sale:
    """
    Purchase an item at its buy-now price.

    Raises:
        ItemNotFound: Unknown item id.
        ItemAlreadySold: Item already sold.
        ItemNotLive: Item delisted.
        BuyNowDisabled: buy_now_price is 0.
        WrongTenderAmount: tendered != buy_now_price.
        InvalidArgument: Owner-of-record buying their own item.
        InsufficientFundsOrAllowance: Buyer cannot cover the price.
        SettlementFailed: Seller no longer holds the asset, or the registry
            rejected the transfer.
    """
    state = scope.state
    item = require_item(state, item_id)
    require_open(item)
    price = item.buy_now_price
    if price == 0:
        raise BuyNowDisabled(f"Buy-now is disabled for item {item_id}")
    if tendered != price:
        raise WrongTenderAmount(f"Item {item_id} costs {price}, tendered {tendered}")
    if caller == item.owner:
        raise InvalidArgument(f"{caller} cannot buy their own item {item_id}")
    if not has_funds(scope.currency, scope.config.spender, caller, price):
        raise InsufficientFundsOrAllowance(
            f"{caller} lacks the balance or allowance to pay {price}"
        )

    sale = _settle(scope, item, caller, price, via="buy_now")
    close_as_sold(state, item, caller)
    scope.emit(
        NotificationKind.ITEM_SOLD, item_id,
        seller=sale.seller,
        buyer=caller,
        price=price,
        commission=sale.commission,
    )
    return sale


def _accept(scope: TransactionScope, item: ListedItem, index: int) -> Sale:
    state = scope.state
    bid = state.bids[item.item_id][index]

    sale = _settle(scope, item, bid.bidder, bid.price, via="bid")
    remove_bid_at(state, item.item_id, index)
    if scope.config.mark_sold_on_bid_accept:
        close_as_sold(state, item, bid.bidder)

    scope.emit(
        NotificationKind.ITEM_SOLD_VIA_BID, item.item_id,
        seller=sale.seller,
        buyer=bid.bidder,
        price=bid.price,
        commission=sale.commission,
    )
    scope.emit(
        NotificationKind.BID_ACCEPTED, item.item_id,
        bidder=bid.bidder,
        price=bid.price,
        bid_id=bid.bid_id,
    )
    return sale


def _open_item_for_acceptance(scope: TransactionScope, caller: Principal, item_id: int) -> ListedItem:
    item = require_item(scope.state, item_id)
    require_owner(item, caller)
    require_open(item)
    return item


def accept_bid(
    scope: TransactionScope,
    caller: Principal,
    item_id: int,
    bidder: Principal,
    price: int,
) -> Optional[Sale]:
    """
    Accept the first open bid matching (bidder, price).

    Returns:
        The Sale, or None when no bid matches (no state change).

    Raises:
        ItemNotFound, NotItemOwner, ItemAlreadySold, ItemNotLive
        InsufficientFundsOrAllowance: The bidder can no longer pay.
        SettlementFailed: Seller no longer holds the asset, or the registry
            rejected the transfer.
    """
    item = _open_item_for_acceptance(scope, caller, item_id)
    index = find_bid(scope.state.bids.get(item_id, ()), bidder, price)
    if index is None:
        return None
    return _accept(scope, item, index)


def accept_bid_by_id(scope: TransactionScope, caller: Principal, item_id: int, bid_id: int) -> Optional[Sale]:
    require_bid_handles(scope)
    item = _open_item_for_acceptance(scope, caller, item_id)
    index = find_bid_by_id(scope.state.bids.get(item_id, ()), bid_id)
    if index is None:
        return None
    return _accept(scope, item, index)
