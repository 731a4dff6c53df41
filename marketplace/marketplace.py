"""
marketplace.py - Marketplace aggregate root

The Marketplace owns the policy, listings and bid book, and is the only
entry point for changing them. Every mutating call runs inside one
transaction scope:

    1. Take the writer lock; a nested call from the same thread raises
       ReentrantCall.
    2. Operate on a working copy of MarketState.
    3. For settlement calls, checkpoint both collaborators first and roll
       them back in reverse order if anything raises. Collaborators that
       are not Checkpointable are refused at construction.
    4. On success, publish the working copy with a single reference swap and
       sequence the buffered notifications.
    5. Release the lock, then dispatch notifications to subscribers.

Readers never take the lock; they see either the state before or after a
call, never a partial one.
"""

from __future__ import annotations
from contextlib import contextmanager
import threading
from typing import Iterator, List, Optional, Tuple

from .core import (
    Principal, AssetRegistry, CurrencyLedger, Checkpointable,
    InvalidArgument, ReentrantCall,
    is_zero_principal,
)
from .notifications import Notification, NotificationKind, NotificationLog, Subscriber
from .records import Bid, ListedItem, MarketState, MarketplaceConfig, Policy, Sale, TransactionScope
from . import bids, listing, policy as policy_ops, settlement


class Marketplace:
    """
    Listing, bidding and settlement for non-fungible assets priced in a
    fungible currency.

    The marketplace holds no funds and no assets. Currency is pulled from
    buyers through allowances granted to `config.spender`, and assets move
    directly from seller to buyer through the asset registry.

    Example:
        ledger = Ledger("main", verbose=False)
        token = TokenLedger(ledger, "MKT")
        assets = AssetLedger(ledger)
        market = Marketplace("admin", assets, token, commission_percent=15)

        punk = assets.mint("punks", "creator")
        item_id = market.list_item("creator", "punks", punk, 10, 20)

        token.mint("buyer", 100)
        token.approve("buyer", market.config.spender, 20)
        sale = market.buy_now("buyer", item_id, 20)
        # sale.seller_proceeds == 17, sale.commission == 3
    """

    def __init__(
        self,
        admin: Principal,
        assets: AssetRegistry,
        currency: CurrencyLedger,
        config: Optional[MarketplaceConfig] = None,
        commission_percent: int = 0,
        commission_recipient: Optional[Principal] = None,
        verbose: bool = True,
    ):
        """
        Create a marketplace.

        Args:
            admin: Principal allowed to change the policy.
            assets: Asset registry the listed instances live in.
            currency: Currency ledger used for payment.
            config: Spender principal and feature flags (default: MarketplaceConfig()).
            commission_percent: Initial commission, 0-100 (default: 0).
            commission_recipient: Initial commission recipient (default: admin).
            verbose: Print a line per committed or rejected call (default: True).

        Raises:
            InvalidArgument: Zero admin, or a collaborator that cannot be
                checkpointed and rolled back.
        """
        if not isinstance(admin, str) or is_zero_principal(admin):
            raise InvalidArgument(f"admin must be a non-zero principal, got {admin!r}")
        for role, collaborator in (("assets", assets), ("currency", currency)):
            if not isinstance(collaborator, Checkpointable):
                raise InvalidArgument(
                    f"{role} must support checkpoint() and rollback() so a failed "
                    f"settlement can be undone, got {type(collaborator).__name__}"
                )
        self._admin = admin
        self._assets = assets
        self._currency = currency
        self._config = config or MarketplaceConfig()
        self.verbose = verbose
        self._state = MarketState(
            policy=policy_ops.default_policy(admin, commission_percent, commission_recipient)
        )
        self._log = NotificationLog()
        self._lock = threading.Lock()
        self._owner_thread: Optional[int] = None

    # ========================================================================
    # TRANSACTION SCOPE
    # ========================================================================

    def _checkpointables(self) -> List[Checkpointable]:
        seen = []
        for collaborator in (self._assets, self._currency):
            if all(collaborator is not c for c in seen):
                seen.append(collaborator)
        return seen

    @contextmanager
    def _transaction(self, operation: str, external: bool = False) -> Iterator[TransactionScope]:
        """
        Run one mutating call atomically.

        Args:
            operation: Name used in verbose output.
            external: The call moves currency or assets; checkpoint the
                collaborators so they can be rolled back.
        """
        if self._owner_thread == threading.get_ident():
            raise ReentrantCall(f"{operation} called while another marketplace call is in progress")

        published: List[Notification] = []
        with self._lock:
            self._owner_thread = threading.get_ident()
            try:
                scope = TransactionScope(
                    state=self._state.copy(),
                    assets=self._assets,
                    currency=self._currency,
                    config=self._config,
                    admin=self._admin,
                )
                checkpoints = []
                if external:
                    checkpoints = [(c, c.checkpoint()) for c in self._checkpointables()]
                try:
                    yield scope
                except Exception as e:
                    for collaborator, token in reversed(checkpoints):
                        collaborator.rollback(token)
                    if self.verbose:
                        print(f"✗ REJECTED [{operation}]: {type(e).__name__}: {e}")
                    raise

                self._state = scope.state
                published = [self._log.append(n) for n in scope.notifications]
                if self.verbose:
                    for entry in published:
                        print(f"✓ {operation}: {entry!r}")
            finally:
                self._owner_thread = None

        self._log.dispatch(published)

    # ========================================================================
    # LISTING REGISTRY
    # ========================================================================

    def list_item(
        self,
        caller: Principal,
        collection: str,
        instance: int,
        min_price: int,
        buy_now_price: int,
    ) -> int:
        """List an asset instance the caller owns or is approved for. Returns the item id."""
        with self._transaction("list_item") as scope:
            return listing.list_item(scope, caller, collection, instance, min_price, buy_now_price)

    def set_buy_now_price(self, caller: Principal, item_id: int, new_price: int) -> ListedItem:
        with self._transaction("set_buy_now_price") as scope:
            return listing.set_buy_now_price(scope, caller, item_id, new_price)

    def set_min_price(self, caller: Principal, item_id: int, new_min: int) -> ListedItem:
        with self._transaction("set_min_price") as scope:
            return listing.set_min_price(scope, caller, item_id, new_min)

    def delist(self, caller: Principal, item_id: int) -> ListedItem:
        with self._transaction("delist") as scope:
            return listing.delist(scope, caller, item_id)

    # ========================================================================
    # SETTLEMENT
    # ========================================================================

    def buy_now(self, caller: Principal, item_id: int, tendered: int) -> Sale:
        """Buy an item at exactly its buy-now price."""
        with self._transaction("buy_now", external=True) as scope:
            return settlement.buy_now(scope, caller, item_id, tendered)

    def accept_bid(self, caller: Principal, item_id: int, bidder: Principal, price: int) -> Optional[Sale]:
        """
        Accept the first open bid from bidder at price.

        Returns None without any change when no such bid exists.
        """
        with self._transaction("accept_bid", external=True) as scope:
            return settlement.accept_bid(scope, caller, item_id, bidder, price)

    def accept_bid_by_id(self, caller: Principal, item_id: int, bid_id: int) -> Optional[Sale]:
        with self._transaction("accept_bid_by_id", external=True) as scope:
            return settlement.accept_bid_by_id(scope, caller, item_id, bid_id)

    # ========================================================================
    # BID BOOK
    # ========================================================================

    def submit_bid(self, caller: Principal, item_id: int, price: int) -> Bid:
        with self._transaction("submit_bid") as scope:
            return bids.submit_bid(scope, caller, item_id, price)

    def cancel_bid(self, caller: Principal, item_id: int, price: int) -> bool:
        """Cancel the caller's first bid at price. Returns False if there is none."""
        with self._transaction("cancel_bid") as scope:
            return bids.cancel_bid(scope, caller, item_id, price)

    def cancel_bid_by_id(self, caller: Principal, item_id: int, bid_id: int) -> bool:
        with self._transaction("cancel_bid_by_id") as scope:
            return bids.cancel_bid_by_id(scope, caller, item_id, bid_id)

    # ========================================================================
    # POLICY STORE
    # ========================================================================

    def set_commission(self, caller: Principal, percent: int) -> Policy:
        with self._transaction("set_commission") as scope:
            return policy_ops.set_commission(scope, caller, percent)

    def set_bank_address(self, caller: Principal, addr: Principal) -> Policy:
        with self._transaction("set_bank_address") as scope:
            return policy_ops.set_bank_address(scope, caller, addr)

    def restrict_to_contract(self, caller: Principal, collection: str) -> Policy:
        with self._transaction("restrict_to_contract") as scope:
            return policy_ops.restrict_to_contract(scope, caller, collection)

    def accept_all_contracts(self, caller: Principal) -> Policy:
        with self._transaction("accept_all_contracts") as scope:
            return policy_ops.accept_all_contracts(scope, caller)

    # ========================================================================
    # READS
    # ========================================================================

    def get_item(self, item_id: int) -> ListedItem:
        return listing.require_item(self._state, item_id)

    def items(self) -> Tuple[ListedItem, ...]:
        """All listing records, including sold and delisted ones, by item id."""
        state = self._state
        return tuple(state.items[item_id] for item_id in sorted(state.items))

    def active_items(self) -> Tuple[ListedItem, ...]:
        return tuple(item for item in self.items() if item.is_active)

    def get_open_bids(self, item_id: int) -> Tuple[Bid, ...]:
        return bids.open_bids(self._state, item_id)

    @property
    def policy(self) -> Policy:
        return self._state.policy

    @property
    def config(self) -> MarketplaceConfig:
        return self._config

    @property
    def admin(self) -> Principal:
        return self._admin

    @property
    def notifications(self) -> List[Notification]:
        return self._log.entries

    def notifications_of(self, kind: NotificationKind) -> List[Notification]:
        return self._log.of_kind(kind)

    def subscribe(self, subscriber: Subscriber) -> None:
        """Call subscriber with each notification after its call commits."""
        self._log.subscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self._log.unsubscribe(subscriber)
