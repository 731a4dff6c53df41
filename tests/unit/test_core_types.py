"""
test_core_types.py - Unit tests for core data structures

Tests:
- Move: creation, validation, immutability
- PendingTransaction and Transaction
- Unit factories: currency, non_fungible
- Protocol conformance of the reference collaborators
"""

import pytest
from decimal import Decimal
from dataclasses import FrozenInstanceError

from marketplace import (
    Move, Transaction, ExecuteResult, build_transaction,
    currency, non_fungible, asset_symbol, non_fungible_transfer_rule,
    AssetRegistry, CurrencyLedger, Checkpointable, LedgerView,
    TokenLedger, AssetLedger, Ledger,
    TransferRuleViolation, MarketplaceError, LedgerError,
    ItemNotFound, ReentrantCall, AssetNotFound,
    UNIT_TYPE_CURRENCY, UNIT_TYPE_NON_FUNGIBLE, ZERO_ADDRESS,
)
from marketplace.core import is_zero_principal


class TestMoveCreation:
    """Tests for Move creation and validation."""

    def test_create_valid_move(self):
        """Valid move creation with all fields."""
        move = Move(Decimal("15"), "MKT", "alice", "bob", "tx_001")
        assert move.source == "alice"
        assert move.dest == "bob"
        assert move.unit_symbol == "MKT"
        assert move.quantity == Decimal("15")
        assert move.contract_id == "tx_001"

    def test_move_requires_decimal(self):
        """Float and int quantities are rejected."""
        with pytest.raises(ValueError, match="Decimal"):
            Move(15, "MKT", "alice", "bob", "tx_001")

    def test_move_rejects_zero(self):
        with pytest.raises(ValueError, match="zero"):
            Move(Decimal("0"), "MKT", "alice", "bob", "tx_001")

    def test_move_rejects_self_transfer(self):
        with pytest.raises(ValueError, match="different"):
            Move(Decimal("1"), "MKT", "alice", "alice", "tx_001")

    def test_move_rejects_empty_fields(self):
        with pytest.raises(ValueError, match="source"):
            Move(Decimal("1"), "MKT", "", "bob", "tx_001")
        with pytest.raises(ValueError, match="contract_id"):
            Move(Decimal("1"), "MKT", "alice", "bob", " ")

    def test_move_rejects_infinite(self):
        with pytest.raises(ValueError, match="finite"):
            Move(Decimal("Infinity"), "MKT", "alice", "bob", "tx_001")

    def test_move_is_immutable(self):
        move = Move(Decimal("1"), "MKT", "alice", "bob", "tx_001")
        with pytest.raises(FrozenInstanceError):
            move.quantity = Decimal("2")


class TestTransactions:
    """Tests for PendingTransaction and Transaction."""

    def test_build_transaction_collects_moves(self):
        moves = [
            Move(Decimal("17"), "MKT", "buyer", "seller", "pay"),
            Move(Decimal("3"), "MKT", "buyer", "bank", "fee"),
        ]
        pending = build_transaction(moves, memo="buy_now")
        assert pending.moves == tuple(moves)
        assert pending.memo == "buy_now"
        assert not pending.is_empty()

    def test_empty_pending(self):
        assert build_transaction([]).is_empty()

    def test_transaction_requires_moves(self):
        with pytest.raises(ValueError, match="must have moves"):
            Transaction(moves=(), memo="", exec_id="x", ledger_name="l", sequence_number=0)

    def test_transaction_repr_lists_moves(self):
        tx = Transaction(
            moves=(Move(Decimal("17"), "MKT", "buyer", "seller", "pay"),),
            memo="buy_now", exec_id="exec:l:0", ledger_name="l", sequence_number=0,
        )
        assert repr(tx) == "Transaction(exec:l:0, 'buy_now', [Move(17 MKT: buyer→seller)])"


class TestUnitFactories:
    """Tests for currency() and non_fungible()."""

    def test_currency_defaults(self):
        unit = currency("MKT", "Market Token")
        assert unit.unit_type == UNIT_TYPE_CURRENCY
        assert unit.decimal_places == 0
        assert unit.min_balance == Decimal("0")

    def test_currency_rounds_down(self):
        unit = currency("MKT", "Market Token")
        assert unit.round(Decimal("2.9")) == Decimal("2")

    def test_non_fungible_bounds(self):
        unit = non_fungible("punks", 7, uri="ipfs://7")
        assert unit.symbol == "punks#7"
        assert unit.unit_type == UNIT_TYPE_NON_FUNGIBLE
        assert unit.min_balance == Decimal("0")
        assert unit.max_balance == Decimal("1")
        assert unit.transfer_rule is non_fungible_transfer_rule
        assert unit.state == {'collection': "punks", 'instance': 7, 'uri': "ipfs://7"}

    def test_non_fungible_rejects_empty_collection(self):
        with pytest.raises(ValueError):
            non_fungible(" ", 1)

    def test_unit_state_is_a_copy(self):
        unit = non_fungible("punks", 1)
        unit.state['uri'] = "changed"
        assert unit.state['uri'] == ""

    def test_asset_symbol(self):
        assert asset_symbol("punks", 3) == "punks#3"

    def test_non_fungible_rule_requires_whole_unit(self):
        move = Move(Decimal("2"), "punks#1", "a", "b", "x")
        with pytest.raises(TransferRuleViolation):
            non_fungible_transfer_rule(None, move)
        non_fungible_transfer_rule(None, Move(Decimal("1"), "punks#1", "a", "b", "x"))


class TestPrincipals:
    """Tests for zero-principal detection."""

    @pytest.mark.parametrize("principal", [None, "", "   ", ZERO_ADDRESS])
    def test_zero_principals(self, principal):
        assert is_zero_principal(principal)

    def test_regular_principal(self):
        assert not is_zero_principal("bank")


class TestProtocols:
    """Reference collaborators satisfy the runtime-checkable protocols."""

    def test_ledger_is_ledger_view(self):
        assert isinstance(Ledger("t", verbose=False), LedgerView)

    def test_token_ledger_protocols(self):
        token = TokenLedger(Ledger("t", verbose=False))
        assert isinstance(token, CurrencyLedger)
        assert isinstance(token, Checkpointable)

    def test_asset_ledger_protocols(self):
        assets = AssetLedger(Ledger("t", verbose=False))
        assert isinstance(assets, AssetRegistry)
        assert isinstance(assets, Checkpointable)


class TestExceptionHierarchy:
    """Marketplace and ledger errors form separate families."""

    def test_marketplace_errors(self):
        assert issubclass(ItemNotFound, MarketplaceError)
        assert issubclass(ReentrantCall, MarketplaceError)
        assert not issubclass(ItemNotFound, LedgerError)

    def test_ledger_errors(self):
        assert issubclass(AssetNotFound, LedgerError)
        assert issubclass(TransferRuleViolation, LedgerError)

    def test_execute_result_values(self):
        assert ExecuteResult.APPLIED != ExecuteResult.REJECTED
