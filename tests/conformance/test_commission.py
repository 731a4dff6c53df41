"""
Commission Conformance Tests

INVARIANT: For every sale at price p with commission percent c:

    commission      = floor(p * c / 100)
    seller_proceeds = p - commission
    seller_proceeds + commission == p

The buyer pays exactly p; nothing is created or lost in rounding.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from marketplace import compute_commission_split

from tests.helpers import ACTORS, BANK, COLLECTION, build_world


prices = st.integers(min_value=0, max_value=10**12)
percents = st.integers(min_value=0, max_value=100)


class TestCommissionProperties:
    """Property-based commission tests."""

    @given(prices, percents)
    def test_split_sums_to_price(self, price, percent):
        """PROPERTY: seller_proceeds + commission == price."""
        seller_proceeds, commission = compute_commission_split(price, percent)
        assert seller_proceeds + commission == price

    @given(prices, percents)
    def test_commission_rounds_down(self, price, percent):
        """PROPERTY: commission is the floor of the exact share."""
        _, commission = compute_commission_split(price, percent)
        assert commission * 100 <= price * percent < (commission + 1) * 100

    @given(prices, percents)
    def test_both_parts_non_negative(self, price, percent):
        seller_proceeds, commission = compute_commission_split(price, percent)
        assert 0 <= commission <= price
        assert 0 <= seller_proceeds <= price

    @given(st.integers(min_value=1, max_value=100), percents)
    @settings(max_examples=50, deadline=None)
    def test_buy_now_balances(self, price, percent):
        """
        PROPERTY: After buy_now the buyer is down exactly price, the seller up
        seller_proceeds and the recipient up commission.
        """
        ledger, token, assets, market = build_world(commission_percent=percent)
        seller, buyer = ACTORS[0], ACTORS[1]
        item_id = market.list_item(seller, COLLECTION, 1, 0, price)

        sale = market.buy_now(buyer, item_id, price)

        expected_proceeds, expected_commission = compute_commission_split(price, percent)
        assert (sale.seller_proceeds, sale.commission) == (expected_proceeds, expected_commission)
        assert token.balance_of(buyer) == 100 - price
        assert token.balance_of(seller) == 100 + expected_proceeds
        assert token.balance_of(BANK) == expected_commission

    @given(st.integers(min_value=1, max_value=100), percents)
    @settings(max_examples=50, deadline=None)
    def test_accept_bid_balances(self, price, percent):
        """PROPERTY: Bid acceptance splits the bid price the same way."""
        ledger, token, assets, market = build_world(commission_percent=percent)
        seller, bidder = ACTORS[0], ACTORS[2]
        item_id = market.list_item(seller, COLLECTION, 1, 1, 0)
        market.submit_bid(bidder, item_id, price)

        sale = market.accept_bid(seller, item_id, bidder, price)

        assert sale.seller_proceeds + sale.commission == price
        assert token.balance_of(bidder) == 100 - price
        assert token.balance_of(seller) == 100 + sale.seller_proceeds
        assert token.balance_of(BANK) == sale.commission
