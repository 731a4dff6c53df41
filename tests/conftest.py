"""
conftest.py - Shared pytest fixtures for marketplace tests

Provides common fixtures used across unit, conformance and functional tests:
- A shared backing ledger with a currency and an asset registry
- A marketplace with a 15% commission paid to a bank principal
- Funded and approved buyers, a creator holding a minted asset
"""

import pytest

from marketplace import Ledger, TokenLedger, AssetLedger, Marketplace, MarketplaceConfig

from tests.helpers import ADMIN, BANK, CREATOR, BUYER, BIDDER, COLLECTION, fund


@pytest.fixture
def ledger():
    """Empty backing ledger."""
    return Ledger("test", verbose=False)


@pytest.fixture
def token(ledger):
    return TokenLedger(ledger, "MKT")


@pytest.fixture
def assets(ledger):
    return AssetLedger(ledger)


@pytest.fixture
def config():
    return MarketplaceConfig()


@pytest.fixture
def market(assets, token, config):
    """Marketplace charging 15% commission to BANK."""
    return Marketplace(
        ADMIN, assets, token,
        config=config,
        commission_percent=15,
        commission_recipient=BANK,
        verbose=False,
    )


@pytest.fixture
def punk(assets):
    """A minted asset instance held by CREATOR."""
    return assets.mint(COLLECTION, CREATOR, uri="ipfs://punk/1")


@pytest.fixture
def listed(market, punk):
    """Punk listed by CREATOR with min price 10 and buy-now 20. Returns the item id."""
    return market.list_item(CREATOR, COLLECTION, punk, 10, 20)


@pytest.fixture
def funded_buyer(market, token):
    fund(token, market, BUYER, 100)
    return BUYER


@pytest.fixture
def funded_bidder(market, token):
    fund(token, market, BIDDER, 100)
    return BIDDER
