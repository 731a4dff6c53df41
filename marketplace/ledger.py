"""
ledger.py - Double-entry ledger backing the reference collaborators

TokenLedger and AssetLedger keep every balance here, and this is the only
module that writes balances. A fungible currency and each asset instance
are both units; issuance moves value out of SYSTEM_WALLET, so every unit
nets to zero across all wallets.

The ledger:
    - answers LedgerView queries for transfer rules
    - applies a PendingTransaction entirely or not at all
    - records each applied transaction in transaction_log
    - snapshots with clone() and resets in place with restore()
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, List, Set, Tuple, Any
import copy
from decimal import Decimal

from .core import (
    Move, Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState,
    QUANTITY_EPSILON, SYSTEM_WALLET,
    TransferRuleViolation, UnitNotRegistered, WalletNotRegistered,
)


class Ledger:
    """
    Wallet balances per unit, changed only through execute().

    Transfer rules receive the ledger itself as a LedgerView and must only
    call its read methods.

    Not thread-safe on its own. The Marketplace holds its lock around every
    call that reaches the collaborators sharing a Ledger.

    Example:
        ledger = Ledger("market")
        ledger.register_unit(currency("MKT", "Market Token"))
        ledger.register_wallet("alice")
        ledger.register_wallet("bob")

        ledger.execute(build_transaction([
            Move(Decimal("100"), "MKT", SYSTEM_WALLET, "alice", "mint"),
            Move(Decimal("40"), "MKT", "alice", "bob", "payment"),
        ]))
    """

    def __init__(self, name: str, verbose: bool = True):
        """
        Args:
            name: Identifier used in execution ids.
            verbose: Print a line per registration, applied and rejected
                transaction (default: True).
        """
        self.name = name
        self.verbose = verbose
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._next_sequence: int = 0
        # unit -> {wallet -> quantity}, non-zero holdings only
        self._positions_by_unit: Dict[str, Dict[str, Decimal]] = defaultdict(dict)

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # READS (LedgerView)
    # ========================================================================

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Raises:
            WalletNotRegistered, UnitNotRegistered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Copy of the unit's state; mutating it does not touch the ledger."""
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return copy.deepcopy(self.units[unit_symbol].state)

    def get_positions(self, unit_symbol: str) -> Positions:
        """Wallets holding a non-zero quantity of the unit."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def has_unit(self, symbol: str) -> bool:
        return symbol in self.units

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Quantity of the unit held outside SYSTEM_WALLET.

        Summed over wallets in sorted order so the result does not depend on
        set iteration order.
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            (self.balances[w].get(unit_symbol, Decimal("0"))
             for w in sorted(self.registered_wallets) if w != SYSTEM_WALLET),
            Decimal("0"),
        )

    def verify_double_entry(self, tolerance: Decimal = Decimal("1e-9")) -> Dict[str, Any]:
        """
        Check that every unit sums to zero over all wallets, SYSTEM_WALLET
        included.

        Returns:
            {'valid': bool, 'discrepancies': [{'unit': symbol, 'net': Decimal}, ...]}
        """
        discrepancies = []
        for unit_symbol in sorted(self.units):
            net = sum(
                (self.balances[w].get(unit_symbol, Decimal("0"))
                 for w in sorted(self.registered_wallets)),
                Decimal("0"),
            )
            if abs(net) > tolerance:
                discrepancies.append({'unit': unit_symbol, 'net': net})
        return {
            'valid': not discrepancies,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Raises:
            ValueError: Wallet already registered.
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def ensure_wallet(self, wallet_id: str) -> str:
        if wallet_id not in self.registered_wallets:
            self.register_wallet(wallet_id)
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Raises:
            ValueError: A unit with this symbol already exists.
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            rule_str = f", rule={unit.transfer_rule.__name__}" if unit.transfer_rule else ""
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}]{rule_str}")

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Validate every move of `pending`, then apply all of them or none.

        An empty transaction is APPLIED without being logged.

        Returns:
            ExecuteResult.APPLIED, or ExecuteResult.REJECTED when a unit or
            wallet is unknown, a transfer rule objects, or a resulting
            balance would leave [min_balance, max_balance].
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        reason = self._rejection_reason(pending)
        if reason:
            if self.verbose:
                print(f"✗ REJECTED [{pending.memo}]: {reason}")
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = Transaction(
            moves=pending.moves,
            memo=pending.memo,
            exec_id=f"exec:{self.name}:{sequence:012d}",
            ledger_name=self.name,
            sequence_number=sequence,
        )
        for move in tx.moves:
            self._apply(move)
        self.transaction_log.append(tx)

        if self.verbose:
            print(f"✓ APPLIED {tx!r}")
        return ExecuteResult.APPLIED

    def _rejection_reason(self, pending: PendingTransaction) -> str:
        """Empty string when the transaction may be applied."""
        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return f"unit not registered: {move.unit_symbol}"
            for wallet in (move.source, move.dest):
                if wallet not in self.registered_wallets:
                    return f"wallet not registered: {wallet}"
            rule = self.units[move.unit_symbol].transfer_rule
            if rule:
                try:
                    rule(self, move)
                except TransferRuleViolation as e:
                    return str(e)

        deltas: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: Decimal("0"))
        for move in pending.moves:
            unit = self.units[move.unit_symbol]
            deltas[(move.source, move.unit_symbol)] = unit.round(
                deltas[(move.source, move.unit_symbol)] - move.quantity)
            deltas[(move.dest, move.unit_symbol)] = unit.round(
                deltas[(move.dest, move.unit_symbol)] + move.quantity)

        # SYSTEM_WALLET may go arbitrarily negative: it is the issuer.
        for (wallet, unit_symbol), delta in deltas.items():
            if wallet == SYSTEM_WALLET:
                continue
            unit = self.units[unit_symbol]
            proposed = unit.round(self.balances[wallet][unit_symbol] + delta)
            if proposed < unit.min_balance:
                return f"{wallet} {unit_symbol}: {proposed} < min {unit.min_balance}"
            if proposed > unit.max_balance:
                return f"{wallet} {unit_symbol}: {proposed} > max {unit.max_balance}"
        return ""

    def _apply(self, move: Move) -> None:
        unit = self.units[move.unit_symbol]
        for wallet, signed in ((move.source, -move.quantity), (move.dest, move.quantity)):
            balance = unit.round(self.balances[wallet][move.unit_symbol] + signed)
            self.balances[wallet][move.unit_symbol] = balance
            if abs(balance) > QUANTITY_EPSILON:
                self._positions_by_unit[move.unit_symbol][wallet] = balance
            else:
                self._positions_by_unit[move.unit_symbol].pop(wallet, None)

    # ========================================================================
    # CHECKPOINTING
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Independent copy of balances, wallets, positions and the log.

        Units are frozen and shared between the copies.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned.verbose = self.verbose
        cloned.units = dict(self.units)
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        cloned.balances = {
            wallet: defaultdict(lambda: Decimal("0"), held)
            for wallet, held in self.balances.items()
        }
        cloned._positions_by_unit = defaultdict(dict, {
            unit_symbol: dict(positions)
            for unit_symbol, positions in self._positions_by_unit.items()
        })
        return cloned

    def restore(self, snapshot: Ledger) -> None:
        """
        Reset this ledger in place to a clone() taken earlier.

        The object keeps its identity, so every collaborator sharing it sees
        the restored balances.
        """
        source = snapshot.clone()
        self.units = source.units
        self.registered_wallets = source.registered_wallets
        self.transaction_log = source.transaction_log
        self._next_sequence = source._next_sequence
        self.balances = source.balances
        self._positions_by_unit = source._positions_by_unit
