"""
records.py - Immutable marketplace records

Listing, bid, policy and sale records are frozen dataclasses. Every change
produces a new record via dataclasses.replace(), which lets MarketState be
copied cheaply for the copy-on-write transaction scope in marketplace.py.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from .core import Principal, AssetRegistry, CurrencyLedger, MARKETPLACE_SPENDER
from .notifications import Notification, NotificationKind, notification


@dataclass(frozen=True, slots=True)
class AssetRef:
    """
    Reference to one asset instance.

    Attributes:
        owner: Owner-of-record. Advisory cache; the asset registry is
            authoritative.
        collection: Asset collection identifier.
        instance: Asset instance identifier within the collection.
    """
    owner: Principal
    collection: str
    instance: int

    @property
    def key(self) -> Tuple[str, int]:
        """(collection, instance) pair used for the active-listing set."""
        return (self.collection, self.instance)


@dataclass(frozen=True, slots=True)
class ListedItem:
    """
    A listing record pairing an asset reference with sale terms.

    Attributes:
        item_id: Monotonic identifier, starts at 1, never reused.
        asset: Asset reference, including the owner-of-record.
        min_price: Minimum acceptable bid.
        buy_now_price: Fixed price for immediate purchase (0 = disabled).
        live: False once delisted.
        sold: True once sold; the record is then immutable history.
    """
    item_id: int
    asset: AssetRef
    min_price: int
    buy_now_price: int
    live: bool = True
    sold: bool = False

    @property
    def owner(self) -> Principal:
        return self.asset.owner

    @property
    def is_active(self) -> bool:
        return self.live and not self.sold

    def with_owner(self, owner: Principal) -> ListedItem:
        return replace(self, asset=replace(self.asset, owner=owner))


@dataclass(frozen=True, slots=True)
class Bid:
    """
    An open offer to purchase an item.

    The legacy API identifies a bid by its first (bidder, price) match;
    bid_id is a stable handle used by the handle-based API.
    """
    bidder: Principal
    price: int
    bid_id: int = 0


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Administrative configuration.

    Attributes:
        commission_percent: Whole percentage of every sale routed to the
            commission recipient, 0-100 inclusive.
        commission_recipient: Principal receiving the commission.
        accepted_collections: Allowlist of collections that may be listed.
            Empty means every collection is accepted.
    """
    commission_percent: int
    commission_recipient: Principal
    accepted_collections: FrozenSet[str] = frozenset()

    def accepts(self, collection: str) -> bool:
        return not self.accepted_collections or collection in self.accepted_collections


@dataclass(frozen=True, slots=True)
class Sale:
    """Outcome of a completed settlement."""
    item_id: int
    collection: str
    instance: int
    seller: Principal
    buyer: Principal
    price: int
    commission: int
    seller_proceeds: int
    via: str  # "buy_now" or "bid"


@dataclass(frozen=True, slots=True)
class MarketplaceConfig:
    """
    Static marketplace configuration.

    Attributes:
        spender: Principal the marketplace acts as when pulling funds through
            allowances on the currency ledger.
        mark_sold_on_bid_accept: Mark the item sold when a bid is accepted.
            False reproduces the legacy behaviour where the listing stays
            live and unsold with a stale owner-of-record.
        stable_bid_handles: Enable accept_bid_by_id() and cancel_bid_by_id().
    """
    spender: Principal = MARKETPLACE_SPENDER
    mark_sold_on_bid_accept: bool = True
    stable_bid_handles: bool = False


@dataclass
class MarketState:
    """
    Mutable marketplace state owned by the Marketplace aggregate.

    Only ever mutated on a working copy inside a transaction scope; the
    published instance is replaced wholesale on commit. Values are immutable
    records, so copy() only needs to copy the containers.
    """
    policy: Policy
    items: Dict[int, ListedItem] = field(default_factory=dict)
    bids: Dict[int, Tuple[Bid, ...]] = field(default_factory=dict)
    active_listings: Set[Tuple[str, int]] = field(default_factory=set)
    next_item_id: int = 1
    next_bid_id: int = 1

    def copy(self) -> MarketState:
        return MarketState(
            policy=self.policy,
            items=dict(self.items),
            bids=dict(self.bids),
            active_listings=set(self.active_listings),
            next_item_id=self.next_item_id,
            next_bid_id=self.next_bid_id,
        )

    def find_item(self, item_id: int) -> Optional[ListedItem]:
        return self.items.get(item_id)


@dataclass
class TransactionScope:
    """
    Everything a mutating operation may touch during one marketplace call.

    Operations mutate `state` (a working copy) and append to `notifications`;
    the Marketplace publishes both only if the call completes.
    """
    state: MarketState
    assets: AssetRegistry
    currency: CurrencyLedger
    config: MarketplaceConfig
    admin: Principal
    notifications: List[Notification] = field(default_factory=list)

    def emit(self, kind: NotificationKind, item_id: Optional[int] = None, **params) -> None:
        self.notifications.append(notification(kind, item_id, **params))
