#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Marketplace Step by Step

A walkthrough of listing, buying and bidding on non-fungible assets.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - The shared ledger, currency, assets, the marketplace
  4-5:  Buy Now      - Listing, fixed-price settlement, commission
  6-7:  Bidding      - Open bids, acceptance, cancellation
  8-9:  Safety       - Rejected calls, a settlement stopped before payment
  10:   Audit        - Notifications and the conservation proof

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from marketplace import (
    Ledger, TokenLedger, AssetLedger, Marketplace,
    MarketplaceError, SYSTEM_WALLET,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    commission_percent: int = 15
    min_price: int = 10
    buy_now_price: int = 20
    bid_price: int = 15
    buyer_funds: int = 100
    bidder_funds: int = 100


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_balances(token: TokenLedger, principals):
    for principal in principals:
        print(f"  {principal:<10} {token.balance_of(principal):>5} {token.symbol}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_ledger():
    step_header(1, "The Shared Ledger",
        "One double-entry ledger backs both the currency and the assets.")

    print(">>> ledger = Ledger('market')")
    ledger = Ledger("market", verbose=True)
    print(">>> token = TokenLedger(ledger, 'MKT')")
    token = TokenLedger(ledger, "MKT")
    print(">>> assets = AssetLedger(ledger)")
    assets = AssetLedger(ledger)

    section_header("Key Insight")
    print("""
    Currency is one fungible unit. Every asset instance is its own unit with
    a balance bounded to [0, 1], so exactly one wallet can hold it.
    """)
    return ledger, token, assets


def step_02_mint(token: TokenLedger, assets: AssetLedger):
    step_header(2, "Minting",
        "Issue currency and create an asset. Value enters through the system wallet.")

    print(">>> punk = assets.mint('punks', 'creator', uri='ipfs://punk/1')")
    punk = assets.mint("punks", "creator", uri="ipfs://punk/1")
    print(f"Owner of punks#{punk}: {assets.owner_of('punks', punk)}")

    token.mint("buyer", CONFIG.buyer_funds)
    token.mint("bidder", CONFIG.bidder_funds)
    section_header("Balances")
    show_balances(token, ["buyer", "bidder", "creator"])
    return punk


def step_03_marketplace(token: TokenLedger, assets: AssetLedger):
    step_header(3, "The Marketplace",
        "The marketplace holds nothing; it pulls funds through allowances.")

    print(f">>> market = Marketplace('admin', assets, token, commission_percent={CONFIG.commission_percent}, commission_recipient='bank')")
    market = Marketplace(
        "admin", assets, token,
        commission_percent=CONFIG.commission_percent,
        commission_recipient="bank",
    )
    print(f"Policy: {market.policy}")
    print(f"Spender principal: {market.config.spender}")
    return market


# ============================================================================
# PHASE 2: BUY NOW (Steps 4-5)
# ============================================================================

def step_04_list(market: Marketplace, punk: int):
    step_header(4, "Listing",
        "The owner lists an asset with a minimum bid and a buy-now price.")

    item_id = market.list_item("creator", "punks", punk, CONFIG.min_price, CONFIG.buy_now_price)
    print(f"Listed as item {item_id}: {market.get_item(item_id)}")

    section_header("One active listing per asset")
    try:
        market.list_item("creator", "punks", punk, 1, 1)
    except MarketplaceError as e:
        print(f"Second listing refused: {type(e).__name__}")
    return item_id


def step_05_buy_now(market: Marketplace, token: TokenLedger, assets: AssetLedger, item_id: int, punk: int):
    step_header(5, "Buy Now",
        "Settlement pays the seller, pays the commission, moves the asset.")

    token.approve("buyer", market.config.spender, CONFIG.buy_now_price)
    sale = market.buy_now("buyer", item_id, CONFIG.buy_now_price)
    print(f"Sale: seller gets {sale.seller_proceeds}, commission {sale.commission}")
    print(f"Owner of punks#{punk}: {assets.owner_of('punks', punk)}")
    print(f"Item sold: {market.get_item(item_id).sold}")
    section_header("Balances")
    show_balances(token, ["buyer", "creator", "bank"])


# ============================================================================
# PHASE 3: BIDDING (Steps 6-7)
# ============================================================================

def step_06_bid(market: Marketplace, token: TokenLedger, punk: int):
    step_header(6, "Bids",
        "Bids are checked against balance and allowance but not escrowed.")

    item_id = market.list_item("buyer", "punks", punk, CONFIG.min_price, 0)
    token.approve("bidder", market.config.spender, CONFIG.bid_price)
    market.submit_bid("bidder", item_id, CONFIG.bid_price)
    market.submit_bid("bidder", item_id, CONFIG.bid_price)
    print(f"Open bids: {market.get_open_bids(item_id)}")

    print("\nCancelling one of the two identical bids:")
    market.cancel_bid("bidder", item_id, CONFIG.bid_price)
    print(f"Open bids: {market.get_open_bids(item_id)}")
    print(f"Cancelling a bid that does not exist: {market.cancel_bid('bidder', item_id, 999)}")
    return item_id


def step_07_accept(market: Marketplace, token: TokenLedger, assets: AssetLedger, item_id: int, punk: int):
    step_header(7, "Accepting a Bid",
        "The owner accepts; the same three legs settle atomically.")

    sale = market.accept_bid("buyer", item_id, "bidder", CONFIG.bid_price)
    print(f"Sale: {sale}")
    print(f"Owner of punks#{punk}: {assets.owner_of('punks', punk)}")
    section_header("Balances")
    show_balances(token, ["bidder", "buyer", "bank"])


# ============================================================================
# PHASE 4: SAFETY (Steps 8-9)
# ============================================================================

def step_08_rejections(market: Marketplace, item_id: int):
    step_header(8, "Rejected Calls",
        "Every precondition failure names its cause and changes nothing.")

    attempts = [
        ("buy a sold item", lambda: market.buy_now("buyer", item_id, 20)),
        ("non-admin sets commission", lambda: market.set_commission("buyer", 1)),
        ("bid on unknown item", lambda: market.submit_bid("buyer", 99, 15)),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except MarketplaceError as e:
            print(f"  {label:<28} -> {type(e).__name__}")


def step_09_stale_owner(market: Marketplace, token: TokenLedger, assets: AssetLedger):
    step_header(9, "Stale Owner-of-Record",
        "A seller who no longer holds the asset is caught before any money moves.")

    punk = assets.mint("punks", "creator")
    item_id = market.list_item("creator", "punks", punk, 1, 20)
    print("The creator moves the asset away behind the marketplace's back...")
    assets.transfer("punks", punk, "creator", "elsewhere")

    token.mint("victim", 20)
    token.approve("victim", market.config.spender, 20)
    before = token.balance_of("victim")
    try:
        market.buy_now("victim", item_id, 20)
    except MarketplaceError as e:
        print(f"buy_now failed: {type(e).__name__}: {e}")
    print(f"Victim balance before {before}, after {token.balance_of('victim')}")
    print(f"Listing still active: {market.get_item(item_id).is_active}")


# ============================================================================
# PHASE 5: AUDIT (Step 10)
# ============================================================================

def step_10_audit(market: Marketplace, ledger: Ledger, token: TokenLedger):
    step_header(10, "Audit Trail",
        "Notifications record every committed call; the ledger still nets to zero.")

    for entry in market.notifications:
        print(f"  {entry!r}")

    section_header("Conservation Proof")
    print(f"MKT outside system wallet: {token.total_supply()}")
    print(f"System wallet MKT:         {ledger.get_balance(SYSTEM_WALLET, token.symbol)}")
    print(f"Double entry valid:        {ledger.verify_double_entry()['valid']}")


def main():
    print("=" * 70)
    print("       ASSET MARKETPLACE TUTORIAL")
    print("=" * 70)

    ledger, token, assets = step_01_ledger()
    wait_for_enter()
    punk = step_02_mint(token, assets)
    wait_for_enter()
    market = step_03_marketplace(token, assets)
    wait_for_enter()

    item_id = step_04_list(market, punk)
    wait_for_enter()
    step_05_buy_now(market, token, assets, item_id, punk)
    wait_for_enter()

    bid_item = step_06_bid(market, token, punk)
    wait_for_enter()
    step_07_accept(market, token, assets, bid_item, punk)
    wait_for_enter()

    step_08_rejections(market, item_id)
    wait_for_enter()
    step_09_stale_owner(market, token, assets)
    wait_for_enter()

    step_10_audit(market, ledger, token)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See marketplace/settlement.py for the settlement legs
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
