"""
marketplace - Asset Marketplace Ledger

Listing, bidding and atomic settlement of non-fungible assets priced in a
fungible currency, on top of a double-entry ledger.

Usage:
    from marketplace import Ledger, TokenLedger, AssetLedger, Marketplace

    ledger = Ledger("main")
    token = TokenLedger(ledger, "MKT")
    assets = AssetLedger(ledger)
    market = Marketplace("admin", assets, token, commission_percent=15)

    # Creator lists an asset: min bid 10, buy-now 20
    punk = assets.mint("punks", "creator")
    item_id = market.list_item("creator", "punks", punk, 10, 20)

    # Buyer funds and approves the marketplace, then buys
    token.mint("buyer", 100)
    token.approve("buyer", market.config.spender, 20)
    sale = market.buy_now("buyer", item_id, 20)
"""

# Core types
from .core import (
    LedgerView,
    AssetRegistry,
    CurrencyLedger,
    Checkpointable,
    Move,
    Transaction,
    PendingTransaction,
    build_transaction,
    Unit,
    ExecuteResult,
    LedgerError,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    AssetNotFound,
    MarketplaceError,
    NotAuthorized,
    AlreadyListed,
    ContractNotAccepted,
    NotItemOwner,
    ItemNotFound,
    ItemAlreadySold,
    ItemNotLive,
    BuyNowDisabled,
    WrongTenderAmount,
    BidTooLow,
    InsufficientFundsOrAllowance,
    InvalidArgument,
    SettlementFailed,
    ReentrantCall,
    currency,
    non_fungible,
    asset_symbol,
    non_fungible_transfer_rule,
    SYSTEM_WALLET,
    ZERO_ADDRESS,
    MARKETPLACE_SPENDER,
    UNIT_TYPE_CURRENCY,
    UNIT_TYPE_NON_FUNGIBLE,
)

# Ledger
from .ledger import Ledger

# Reference collaborators
from .registries import TokenLedger, AssetLedger

# Records
from .records import (
    AssetRef,
    ListedItem,
    Bid,
    Policy,
    Sale,
    MarketplaceConfig,
    MarketState,
)

# Notifications
from .notifications import Notification, NotificationKind, NotificationLog

# Settlement math
from .settlement import compute_commission_split

# Marketplace
from .marketplace import Marketplace

__all__ = [
    # Protocols
    'LedgerView', 'AssetRegistry', 'CurrencyLedger', 'Checkpointable',
    # Ledger types
    'Move', 'Transaction', 'PendingTransaction', 'build_transaction',
    'Unit', 'ExecuteResult', 'Ledger',
    # Ledger errors
    'LedgerError', 'TransferRuleViolation', 'UnitNotRegistered',
    'WalletNotRegistered', 'AssetNotFound',
    # Marketplace errors
    'MarketplaceError', 'NotAuthorized', 'AlreadyListed', 'ContractNotAccepted',
    'NotItemOwner', 'ItemNotFound', 'ItemAlreadySold', 'ItemNotLive',
    'BuyNowDisabled', 'WrongTenderAmount', 'BidTooLow',
    'InsufficientFundsOrAllowance', 'InvalidArgument', 'SettlementFailed',
    'ReentrantCall',
    # Units
    'currency', 'non_fungible', 'asset_symbol', 'non_fungible_transfer_rule',
    'UNIT_TYPE_CURRENCY', 'UNIT_TYPE_NON_FUNGIBLE',
    # Constants
    'SYSTEM_WALLET', 'ZERO_ADDRESS', 'MARKETPLACE_SPENDER',
    # Collaborators
    'TokenLedger', 'AssetLedger',
    # Records
    'AssetRef', 'ListedItem', 'Bid', 'Policy', 'Sale', 'MarketplaceConfig',
    'MarketState',
    # Notifications
    'Notification', 'NotificationKind', 'NotificationLog',
    # Marketplace
    'Marketplace', 'compute_commission_split',
]

__version__ = '1.0.0'
