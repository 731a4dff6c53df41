"""
listing.py - Listing Registry

Maps generated item ids to listed assets and their sale terms, and enforces
one active (live, unsold) listing per (collection, instance) pair through
MarketState.active_listings.

Item state machine:
    Listed(live) -> Sold       (settlement.py)
    Listed(live) -> Delisted   (delist)

Sold and delisted records are kept as history; item ids are never reused.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional

from .core import (
    Principal,
    NotAuthorized, AlreadyListed, ContractNotAccepted, NotItemOwner,
    ItemNotFound, ItemAlreadySold, ItemNotLive, InvalidArgument,
)
from .notifications import NotificationKind
from .records import AssetRef, ListedItem, MarketState, TransactionScope


def require_amount(value: int, name: str, positive: bool = False) -> int:
    """Validate an integer amount in the smallest currency unit."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or (positive and value == 0):
        bound = "positive" if positive else "non-negative"
        raise InvalidArgument(f"{name} must be {bound}, got {value}")
    return value


def require_item(state: MarketState, item_id: int) -> ListedItem:
    if isinstance(item_id, bool) or not isinstance(item_id, int):
        raise ItemNotFound(f"Item {item_id!r} not found")
    item = state.find_item(item_id)
    if item is None:
        raise ItemNotFound(f"Item {item_id} not found")
    return item


def require_owner(item: ListedItem, caller: Principal) -> None:
    if caller != item.owner:
        raise NotItemOwner(f"{caller} is not the owner of item {item.item_id}")


def require_open(item: ListedItem) -> None:
    """The item must be live and unsold."""
    if item.sold:
        raise ItemAlreadySold(f"Item {item.item_id} has already been sold")
    if not item.live:
        raise ItemNotLive(f"Item {item.item_id} has been delisted")


def list_item(
    scope: TransactionScope,
    caller: Principal,
    collection: str,
    instance: int,
    min_price: int,
    buy_now_price: int,
) -> int:
    """
    List an asset instance for sale.

    The caller becomes the owner-of-record. The asset registry must report
    the caller as owner or approved for the instance.

    Returns:
        The new item id.

    Raises:
        InvalidArgument: Malformed asset reference, negative or non-int prices.
        ContractNotAccepted: Collection not on a non-empty allowlist.
        NotAuthorized: Caller neither owns nor is approved for the asset.
        AlreadyListed: The pair already has an active listing.
    """
    if not isinstance(collection, str) or not collection.strip():
        raise InvalidArgument("collection must be a non-empty string")
    if isinstance(instance, bool) or not isinstance(instance, int):
        raise InvalidArgument(f"instance must be an int, got {type(instance).__name__}")
    require_amount(min_price, "min_price")
    require_amount(buy_now_price, "buy_now_price")
    state = scope.state

    if not state.policy.accepts(collection):
        raise ContractNotAccepted(f"Collection {collection} is not accepted by the marketplace")
    if not scope.assets.is_approved_or_owner(caller, collection, instance):
        raise NotAuthorized(
            f"{caller} must be the owner or approved for {collection}#{instance} to list it"
        )
    if (collection, instance) in state.active_listings:
        raise AlreadyListed(f"{collection}#{instance} is already listed")

    item_id = state.next_item_id
    state.next_item_id += 1
    item = ListedItem(
        item_id=item_id,
        asset=AssetRef(owner=caller, collection=collection, instance=instance),
        min_price=min_price,
        buy_now_price=buy_now_price,
    )
    state.items[item_id] = item
    state.active_listings.add(item.asset.key)
    state.bids[item_id] = ()

    scope.emit(
        NotificationKind.ITEM_LISTED, item_id,
        collection=collection,
        instance=instance,
        seller=caller,
        min_price=min_price,
        buy_now_price=buy_now_price,
    )
    return item_id


def _update_terms(
    scope: TransactionScope,
    caller: Principal,
    item_id: int,
    min_price: Optional[int] = None,
    buy_now_price: Optional[int] = None,
) -> ListedItem:
    item = require_item(scope.state, item_id)
    require_owner(item, caller)
    require_open(item)
    changes = {}
    if min_price is not None:
        changes['min_price'] = require_amount(min_price, "min_price")
    if buy_now_price is not None:
        changes['buy_now_price'] = require_amount(buy_now_price, "buy_now_price")
    updated = replace(item, **changes)
    scope.state.items[item_id] = updated
    scope.emit(
        NotificationKind.PRICE_CHANGED, item_id,
        min_price=updated.min_price,
        buy_now_price=updated.buy_now_price,
    )
    return updated


def set_buy_now_price(scope: TransactionScope, caller: Principal, item_id: int, new_price: int) -> ListedItem:
    """Change the buy-now price. 0 disables buy-now."""
    return _update_terms(scope, caller, item_id, buy_now_price=new_price)


def set_min_price(scope: TransactionScope, caller: Principal, item_id: int, new_min: int) -> ListedItem:
    """Change the minimum bid. Open bids below the new minimum stay open."""
    return _update_terms(scope, caller, item_id, min_price=new_min)


def delist(scope: TransactionScope, caller: Principal, item_id: int) -> ListedItem:
    """
    Withdraw a live, unsold item.

    The (collection, instance) pair is released so the asset can be listed
    again under a new item id. Open bids remain until their bidders cancel
    them but can no longer be accepted.
    """
    item = require_item(scope.state, item_id)
    require_owner(item, caller)
    require_open(item)
    updated = replace(item, live=False)
    scope.state.items[item_id] = updated
    scope.state.active_listings.discard(item.asset.key)
    scope.emit(
        NotificationKind.ITEM_DELISTED, item_id,
        collection=item.asset.collection,
        instance=item.asset.instance,
        seller=caller,
    )
    return updated


def close_as_sold(state: MarketState, item: ListedItem, buyer: Principal) -> ListedItem:
    """
    Terminal Sold transition: mark sold, clear buy-now, record the buyer as
    owner-of-record and release the pair for future listings.
    """
    updated = replace(item.with_owner(buyer), sold=True, buy_now_price=0)
    state.items[item.item_id] = updated
    state.active_listings.discard(item.asset.key)
    return updated
