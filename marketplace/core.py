"""
Core types and pure functions for the asset marketplace.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView, AssetRegistry, CurrencyLedger, Checkpointable
2. Immutable ledger data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError and MarketplaceError families
4. Type aliases: Principal, Positions, UnitState
5. Transfer rules: Pure validation functions for moves
6. Unit factories: Functions to create currency and non-fungible units

All functions in this module are pure and operate on read-only views.
No function can mutate ledger or marketplace state directly.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN, ROUND_DOWN, getcontext
from enum import Enum
from typing import (
    Dict, Set, Optional, Callable, Any, Protocol,
    Tuple, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# The backing ledger requires deterministic Decimal arithmetic.
# The global context is configured once at module load time.
#
# PRECONDITION: No other code should modify the global Decimal context.
# If thread-local contexts are needed, use decimal.localcontext().
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for issuance (minting currency and assets).
# The system wallet is exempt from balance validation and can hold any balance.
SYSTEM_WALLET = "system"

# The zero principal. Never a valid commission recipient.
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Default principal the marketplace acts as when pulling funds via allowances.
MARKETPLACE_SPENDER = "marketplace"

# Unit type constants (strings, not enum per design decision).
UNIT_TYPE_CURRENCY = "CURRENCY"
UNIT_TYPE_NON_FUNGIBLE = "NON_FUNGIBLE"

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")

# Commission percentages are whole numbers in [0, COMMISSION_DENOMINATOR].
COMMISSION_DENOMINATOR = 100

DECIMAL_ROUNDING = {
    UNIT_TYPE_CURRENCY: ROUND_DOWN,
    UNIT_TYPE_NON_FUNGIBLE: ROUND_DOWN,
}


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque account identifier (wallet id, address).
Principal = str

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, Decimal]

# Internal state for a unit (asset metadata, issuer, etc.).
UnitState = Dict[str, Any]


def is_zero_principal(principal: Optional[Principal]) -> bool:
    """True for None, blank strings and ZERO_ADDRESS."""
    return not principal or not principal.strip() or principal == ZERO_ADDRESS


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to the backing ledger.

    Transfer rules receive a LedgerView so they can query state without
    the ability to modify it. The Ledger class implements this protocol but
    also provides mutation methods.
    """

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Return the balance of a specific unit in a wallet.

        Returns Decimal("0") if the wallet holds none of the unit.
        """
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


@runtime_checkable
class AssetRegistry(Protocol):
    """
    Non-fungible asset ledger consumed by the marketplace.

    The registry is the source of truth for ownership. The marketplace only
    caches an owner-of-record per listing.
    """

    def owner_of(self, collection: str, instance: int) -> Principal:
        """Return the current owner of the asset instance."""
        ...

    def is_approved_or_owner(self, caller: Principal, collection: str, instance: int) -> bool:
        """Return True if caller owns the instance or may move it."""
        ...

    def transfer(self, collection: str, instance: int, source: Principal, dest: Principal) -> None:
        """
        Move the instance from source to dest.

        Raises:
            LedgerError: If source is not the current owner.
        """
        ...


@runtime_checkable
class CurrencyLedger(Protocol):
    """
    Fungible balance ledger consumed by the marketplace.

    transfer_from() reports failure through its return value instead of
    raising, by convention of this collaborator.
    """

    def balance_of(self, principal: Principal) -> int:
        ...

    def allowance(self, owner: Principal, spender: Principal) -> int:
        ...

    def transfer_from(self, owner: Principal, spender: Principal, dest: Principal, amount: int) -> bool:
        ...


@runtime_checkable
class Checkpointable(Protocol):
    """
    Collaborator that can snapshot and restore its state.

    The marketplace refuses collaborators without these hooks. It checkpoints
    both before a settlement call and rolls them back if any step fails.
    """

    def checkpoint(self) -> Any:
        ...

    def rollback(self, token: Any) -> None:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a ledger execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    REJECTED: Transaction failed validation (balance constraints, transfer
              rules, unknown wallets or units).
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all backing-ledger errors."""
    pass


class TransferRuleViolation(LedgerError):
    """Raised when a move violates the unit's transfer rule."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class AssetNotFound(LedgerError):
    """Raised when an asset instance has never been minted."""
    pass


class MarketplaceError(Exception):
    """Base exception for all marketplace errors. No state changes when raised."""
    pass


class NotAuthorized(MarketplaceError):
    """Caller is neither owner nor approved for the asset, or is not the admin."""
    pass


class AlreadyListed(MarketplaceError):
    """The asset instance already has an active listing."""
    pass


class ContractNotAccepted(MarketplaceError):
    """The asset collection is not on the accepted allowlist."""
    pass


class NotItemOwner(MarketplaceError):
    """Caller is not the owner-of-record of the item."""
    pass


class ItemNotFound(MarketplaceError):
    """No item exists with the given id."""
    pass


class ItemAlreadySold(MarketplaceError):
    """The item has already been sold."""
    pass


class ItemNotLive(MarketplaceError):
    """The item has been delisted."""
    pass


class BuyNowDisabled(MarketplaceError):
    """The item's buy-now price is 0."""
    pass


class WrongTenderAmount(MarketplaceError):
    """The tendered amount is not exactly the buy-now price."""
    pass


class BidTooLow(MarketplaceError):
    """The bid is below the item's minimum price."""
    pass


class InsufficientFundsOrAllowance(MarketplaceError):
    """Balance or allowance granted to the marketplace does not cover the amount."""
    pass


class InvalidArgument(MarketplaceError):
    """An argument is out of range or otherwise malformed."""
    pass


class SettlementFailed(MarketplaceError):
    """The asset registry refused the ownership transfer during settlement."""
    pass


class ReentrantCall(MarketplaceError):
    """A mutating entry point was invoked while another is executing."""
    pass


# ============================================================================
# CORE LEDGER DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (must be finite and non-zero).
        unit_symbol: The symbol of the unit being transferred.
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if abs(self.quantity) < QUANTITY_EPSILON:
            raise ValueError("Move quantity is effectively zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A set of moves before execution - represents INTENT.

    Built by the collaborators and submitted to Ledger.execute().

    Attributes:
        moves: Tuple of value transfers between wallets
        memo: Short description of the business operation
    """
    moves: Tuple[Move, ...]
    memo: str = ""

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves."""
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, memo={self.memo!r})"


def build_transaction(moves, memo: str = "") -> PendingTransaction:
    """
    Build a PendingTransaction from a list of moves.

    Example:
        tx = build_transaction([
            Move(Decimal("15"), "MKT", "alice", "bob", "bid_settlement")
        ], memo="accept_bid")
        ledger.execute(tx)
    """
    return PendingTransaction(moves=tuple(moves), memo=memo)


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        moves: Tuple of value transfers between wallets
        memo: Description carried over from the PendingTransaction
        exec_id: Unique execution identifier (ledger + sequence)
        ledger_name: Name of the ledger that executed this
        sequence_number: Monotonic sequence within the ledger (for ordering)
    """
    moves: Tuple[Move, ...]
    memo: str
    exec_id: str
    ledger_name: str
    sequence_number: int

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"Transaction({self.exec_id}, {self.memo!r}, [{moves}])"


# Type alias for transfer rule functions.
# Transfer rules validate moves and raise TransferRuleViolation if invalid.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a mutable state dict to a sorted tuple of (key, value) pairs."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state representation back to a mutable dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit (currency or asset instance) in the ledger.

    Attributes:
        symbol: Short identifier for the unit (e.g., "MKT", "punks#7").
        name: Human-readable name for the unit.
        unit_type: Category of the unit (CURRENCY, NON_FUNGIBLE).
        min_balance: Minimum allowed balance in any wallet.
        max_balance: Maximum allowed balance in any wallet.
        decimal_places: Number of decimal places for rounding (None = no rounding).
        transfer_rule: Optional function to validate moves involving this unit.
        _frozen_state: Internal frozen state representation (tuple of key-value pairs).
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = None
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = ()

    @property
    def state(self) -> UnitState:
        """Returns a new dict each time to prevent accidental mutation."""
        return _thaw_state(self._frozen_state)

    def round(self, value: Decimal) -> Decimal:
        """
        Round a value to this unit's decimal precision using quantize.

        Returns the value unchanged if decimal_places is None.
        """
        if self.decimal_places is None:
            return value
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        quantizer = Decimal(10) ** -self.decimal_places
        rounding_mode = DECIMAL_ROUNDING.get(self.unit_type, ROUND_HALF_EVEN)
        return value.quantize(quantizer, rounding=rounding_mode)


# ============================================================================
# TRANSFER RULES
# ============================================================================

def non_fungible_transfer_rule(view: LedgerView, move: Move) -> None:
    """
    Enforce that a non-fungible unit always moves whole and alone.

    Each asset instance has a supply of exactly one, so every move must carry
    a quantity of exactly 1.

    Raises:
        TransferRuleViolation: If the move quantity is not exactly 1.
    """
    if move.quantity != Decimal("1"):
        raise TransferRuleViolation(
            f"Non-fungible {move.unit_symbol} must move in quantity 1, got {move.quantity}"
        )


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def currency(symbol: str, name: str, decimal_places: int = 0) -> Unit:
    """
    Create a fungible currency unit.

    Args:
        symbol: Currency code (e.g., "MKT").
        name: Full name of the currency.
        decimal_places: Number of decimal places for amounts (default: 0,
            amounts are integers in the smallest denomination).

    Returns:
        A Unit with a zero minimum balance (no overdrafts).
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_CURRENCY,
        decimal_places=decimal_places,
        min_balance=Decimal("0"),
        _frozen_state=_freeze_state({'issuer': SYSTEM_WALLET}),
    )


def asset_symbol(collection: str, instance: int) -> str:
    """Ledger symbol for one asset instance."""
    return f"{collection}#{instance}"


def non_fungible(collection: str, instance: int, uri: str = "") -> Unit:
    """
    Create a unit representing a single asset instance.

    The unit can be held by at most one wallet at a time: balances are bounded
    to [0, 1] and the transfer rule only allows whole moves.
    """
    if not collection or not collection.strip():
        raise ValueError("collection cannot be empty")
    return Unit(
        symbol=asset_symbol(collection, instance),
        name=f"{collection} #{instance}",
        unit_type=UNIT_TYPE_NON_FUNGIBLE,
        min_balance=Decimal("0"),
        max_balance=Decimal("1"),
        decimal_places=0,
        transfer_rule=non_fungible_transfer_rule,
        _frozen_state=_freeze_state({
            'collection': collection,
            'instance': instance,
            'uri': uri,
        }),
    )
