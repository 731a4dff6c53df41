"""
helpers.py - Shared constants and state helpers for marketplace tests
"""

from decimal import Decimal
from typing import Any, Dict

from marketplace import Ledger, TokenLedger, AssetLedger, Marketplace, MarketplaceConfig


ADMIN = "admin"
BANK = "bank"
CREATOR = "creator"
BUYER = "buyer"
BIDDER = "bidder"
COLLECTION = "punks"


def fund(token: TokenLedger, market: Marketplace, principal: str, amount: int, allowance: int = None) -> None:
    """Mint currency to principal and approve the marketplace spender."""
    token.mint(principal, amount)
    token.approve(principal, market.config.spender, amount if allowance is None else allowance)


def snapshot(market: Marketplace, token: TokenLedger, assets: AssetLedger) -> Dict[str, Any]:
    """Capture every observable piece of marketplace and collaborator state."""
    ledger = token.ledger
    balances = {
        (wallet, unit): ledger.get_balance(wallet, unit)
        for wallet in sorted(ledger.list_wallets())
        for unit in ledger.list_units()
    }
    return {
        'items': market.items(),
        'bids': {item.item_id: market.get_open_bids(item.item_id) for item in market.items()},
        'policy': market.policy,
        'notifications': len(market.notifications),
        'balances': balances,
        'allowances': dict(token._allowances),
        'approvals': dict(assets._approvals),
        'transactions': len(ledger.transaction_log),
    }


def supply(ledger: Ledger, unit: str) -> Decimal:
    """Supply held outside the system wallet."""
    return ledger.total_supply(unit)


# =============================================================================
# RANDOMISED OPERATION SEQUENCES
# =============================================================================

ACTORS = ("alice", "bob", "carol")

OPERATIONS = (
    "list", "delist", "set_price", "buy", "bid", "cancel", "accept",
    "revoke", "transfer_away", "set_commission",
)


def build_world(config: MarketplaceConfig = None, commission_percent: int = 15):
    """
    Fresh ledger, collaborators and marketplace. Every actor holds one punk
    (instances 1-3, in ACTORS order) and 100 MKT fully approved for the
    marketplace.
    """
    ledger = Ledger("world", verbose=False)
    token = TokenLedger(ledger, "MKT")
    assets = AssetLedger(ledger)
    market = Marketplace(
        ADMIN, assets, token,
        config=config,
        commission_percent=commission_percent,
        commission_recipient=BANK,
        verbose=False,
    )
    for actor in ACTORS:
        assets.mint(COLLECTION, actor)
        fund(token, market, actor, 100)
    return ledger, token, assets, market


def apply_operation(market: Marketplace, token: TokenLedger, assets: AssetLedger,
                    op: str, actor: str, amount: int, target: int) -> None:
    """
    Run one operation. `target` is an item id, or an asset instance for
    "list" and "transfer_away". Marketplace errors propagate to the caller.
    """
    items = {item.item_id: item for item in market.items()}
    if op == "list":
        market.list_item(actor, COLLECTION, target, amount, amount * 2)
    elif op == "delist":
        market.delist(actor, target)
    elif op == "set_price":
        market.set_buy_now_price(actor, target, amount)
    elif op == "buy":
        tender = items[target].buy_now_price if target in items else amount
        market.buy_now(actor, target, tender)
    elif op == "bid":
        market.submit_bid(actor, target, amount)
    elif op == "cancel":
        market.cancel_bid(actor, target, amount)
    elif op == "accept":
        bids = market.get_open_bids(target) if target in items else ()
        if bids:
            market.accept_bid(actor, target, bids[0].bidder, bids[0].price)
        else:
            market.accept_bid(actor, target, actor, amount)
    elif op == "revoke":
        token.approve(actor, market.config.spender, amount)
    elif op == "transfer_away":
        if assets.exists(COLLECTION, target):
            owner = assets.owner_of(COLLECTION, target)
            if owner != actor:
                assets.transfer(COLLECTION, target, owner, actor)
    elif op == "set_commission":
        market.set_commission(ADMIN, amount % 101)
    else:
        raise ValueError(f"unknown operation {op}")
