"""
registries.py - Reference collaborators backed by the Ledger

TokenLedger implements the CurrencyLedger protocol and AssetLedger the
AssetRegistry protocol. Both are thin views over a shared Ledger: currency is
one fungible unit, every asset instance is its own non-fungible unit with a
supply of exactly one. All balance changes go through Ledger.execute(), so
they inherit its atomicity and validation.

Both classes implement Checkpointable so the marketplace can roll them back
when a settlement fails part-way.

Pattern:
    Mint:      Move(1, "punks#1", system -> creator)
    Buy now:   Move(17, "MKT", buyer -> seller)
               Move(3, "MKT", buyer -> bank)
               Move(1, "punks#1", seller -> buyer)
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Optional, Set, Tuple

from .core import (
    Move, Principal, ExecuteResult,
    SYSTEM_WALLET, QUANTITY_EPSILON,
    AssetNotFound, TransferRuleViolation,
    build_transaction, currency, non_fungible, asset_symbol, is_zero_principal,
)
from .ledger import Ledger


def _quantity(amount: int) -> Decimal:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"amount must be an int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"amount must be non-negative, got {amount}")
    return Decimal(amount)


class TokenLedger:
    """
    Fungible currency with ERC-20 style allowances.

    Amounts are integers in the smallest denomination. transfer() and
    transfer_from() return False on failure instead of raising.

    Example:
        ledger = Ledger("main", verbose=False)
        token = TokenLedger(ledger, "MKT")
        token.mint("alice", 1000)
        token.approve("alice", "marketplace", 15)
        token.transfer_from("alice", "marketplace", "bob", 15)  # True
    """

    def __init__(self, ledger: Ledger, symbol: str = "MKT", name: str = "Marketplace Token"):
        self.ledger = ledger
        self.symbol = symbol
        if not ledger.has_unit(symbol):
            ledger.register_unit(currency(symbol, name))
        self._allowances: Dict[Tuple[Principal, Principal], int] = {}

    def mint(self, to: Principal, amount: int) -> ExecuteResult:
        """Issue new currency from the system wallet."""
        quantity = _quantity(amount)
        if quantity == 0:
            return ExecuteResult.APPLIED
        self.ledger.ensure_wallet(to)
        return self.ledger.execute(build_transaction(
            [Move(quantity, self.symbol, SYSTEM_WALLET, to, f"mint_{self.symbol}")],
            memo="mint",
        ))

    def balance_of(self, principal: Principal) -> int:
        if not self.ledger.is_registered(principal):
            return 0
        return int(self.ledger.get_balance(principal, self.symbol))

    def total_supply(self) -> int:
        return int(self.ledger.total_supply(self.symbol))

    def approve(self, owner: Principal, spender: Principal, amount: int) -> None:
        """Set (not increase) the amount spender may move on owner's behalf."""
        _quantity(amount)
        if amount == 0:
            self._allowances.pop((owner, spender), None)
        else:
            self._allowances[(owner, spender)] = amount

    def allowance(self, owner: Principal, spender: Principal) -> int:
        return self._allowances.get((owner, spender), 0)

    def transfer(self, owner: Principal, to: Principal, amount: int) -> bool:
        return self._move(owner, to, amount, "transfer")

    def transfer_from(self, owner: Principal, spender: Principal, to: Principal, amount: int) -> bool:
        """
        Move amount from owner to `to`, spending spender's allowance.

        Returns False without any state change if the allowance or the
        owner's balance is insufficient.
        """
        try:
            _quantity(amount)
        except ValueError:
            return False
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            return False
        if not self._move(owner, to, amount, f"transfer_from:{spender}"):
            return False
        self.approve(owner, spender, allowed - amount)
        return True

    def _move(self, owner: Principal, to: Principal, amount: int, memo: str) -> bool:
        try:
            quantity = _quantity(amount)
        except ValueError:
            return False
        if quantity == 0:
            return True
        if owner == to or not self.ledger.is_registered(owner):
            return False
        self.ledger.ensure_wallet(to)
        result = self.ledger.execute(build_transaction(
            [Move(quantity, self.symbol, owner, to, memo)],
            memo=memo,
        ))
        return result == ExecuteResult.APPLIED

    # Checkpointable

    def checkpoint(self):
        return (self.ledger.clone(), dict(self._allowances))

    def rollback(self, token) -> None:
        snapshot, allowances = token
        self.ledger.restore(snapshot)
        self._allowances = dict(allowances)


class AssetLedger:
    """
    Non-fungible asset registry.

    Each (collection, instance) pair is registered as its own unit bounded to
    [0, 1], so at most one wallet can hold it. Instance ids are monotonic per
    collection and start at 1.

    Approvals follow ERC-721: a per-asset approved principal (cleared on
    transfer) and per-owner operators approved for all of the owner's assets.
    """

    def __init__(self, ledger: Ledger):
        self.ledger = ledger
        self._last_instance: Dict[str, int] = {}
        self._approvals: Dict[Tuple[str, int], Principal] = {}
        self._operators: Set[Tuple[Principal, Principal]] = set()

    def mint(self, collection: str, owner: Principal, uri: str = "") -> int:
        """
        Create the next instance of a collection, owned by owner.

        Raises:
            ValueError: owner is blank, the zero address or SYSTEM_WALLET.
                Nothing is registered and the instance id is not consumed.
        """
        if not isinstance(owner, str) or is_zero_principal(owner) or owner == SYSTEM_WALLET:
            raise ValueError(f"Cannot mint to {owner!r}")
        instance = self._last_instance.get(collection, 0) + 1
        unit = non_fungible(collection, instance, uri)
        issue = Move(Decimal("1"), unit.symbol, SYSTEM_WALLET, owner, f"mint_{unit.symbol}")
        self.ledger.register_unit(unit)
        self.ledger.ensure_wallet(owner)
        result = self.ledger.execute(build_transaction([issue], memo="mint"))
        if result != ExecuteResult.APPLIED:
            raise TransferRuleViolation(f"Minting {unit.symbol} to {owner} was rejected")
        self._last_instance[collection] = instance
        return instance

    def exists(self, collection: str, instance: int) -> bool:
        return self.ledger.has_unit(asset_symbol(collection, instance))

    def owner_of(self, collection: str, instance: int) -> Principal:
        """
        Raises:
            AssetNotFound: If the instance was never minted.
        """
        symbol = asset_symbol(collection, instance)
        if not self.ledger.has_unit(symbol):
            raise AssetNotFound(f"Asset {symbol} does not exist")
        for wallet, quantity in self.ledger.get_positions(symbol).items():
            if wallet != SYSTEM_WALLET and quantity > QUANTITY_EPSILON:
                return wallet
        raise AssetNotFound(f"Asset {symbol} has no holder")

    def token_uri(self, collection: str, instance: int) -> str:
        symbol = asset_symbol(collection, instance)
        if not self.ledger.has_unit(symbol):
            raise AssetNotFound(f"Asset {symbol} does not exist")
        return self.ledger.get_unit_state(symbol).get('uri', "")

    def approve(self, caller: Principal, approved: Principal, collection: str, instance: int) -> None:
        """
        Let `approved` move one asset. Only the owner or one of its operators
        may approve.
        """
        owner = self.owner_of(collection, instance)
        if caller != owner and not self.is_approved_for_all(owner, caller):
            raise TransferRuleViolation(
                f"{caller} may not approve {asset_symbol(collection, instance)}"
            )
        self._approvals[(collection, instance)] = approved

    def get_approved(self, collection: str, instance: int) -> Optional[Principal]:
        return self._approvals.get((collection, instance))

    def set_approval_for_all(self, owner: Principal, operator: Principal, approved: bool) -> None:
        if owner == operator:
            raise ValueError("owner cannot be its own operator")
        if approved:
            self._operators.add((owner, operator))
        else:
            self._operators.discard((owner, operator))

    def is_approved_for_all(self, owner: Principal, operator: Principal) -> bool:
        return (owner, operator) in self._operators

    def is_approved_or_owner(self, caller: Principal, collection: str, instance: int) -> bool:
        if not self.exists(collection, instance):
            return False
        owner = self.owner_of(collection, instance)
        return (
            caller == owner
            or self._approvals.get((collection, instance)) == caller
            or self.is_approved_for_all(owner, caller)
        )

    def transfer(self, collection: str, instance: int, source: Principal, dest: Principal) -> None:
        """
        Raises:
            AssetNotFound: If the instance was never minted.
            TransferRuleViolation: If source is not the current owner or the
                ledger rejects the move.
        """
        symbol = asset_symbol(collection, instance)
        owner = self.owner_of(collection, instance)
        if owner != source:
            raise TransferRuleViolation(f"{source} does not own {symbol} (owner is {owner})")
        if source == dest:
            raise TransferRuleViolation(f"Cannot transfer {symbol} to its current owner")
        self.ledger.ensure_wallet(dest)
        result = self.ledger.execute(build_transaction(
            [Move(Decimal("1"), symbol, source, dest, f"transfer_{symbol}")],
            memo="asset_transfer",
        ))
        if result != ExecuteResult.APPLIED:
            raise TransferRuleViolation(f"Transfer of {symbol} from {source} to {dest} was rejected")
        self._approvals.pop((collection, instance), None)

    # Checkpointable

    def checkpoint(self):
        return (
            self.ledger.clone(),
            dict(self._last_instance),
            dict(self._approvals),
            set(self._operators),
        )

    def rollback(self, token) -> None:
        snapshot, last_instance, approvals, operators = token
        self.ledger.restore(snapshot)
        self._last_instance = dict(last_instance)
        self._approvals = dict(approvals)
        self._operators = set(operators)
