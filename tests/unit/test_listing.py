"""
test_listing.py - Unit tests for the Listing Registry

Tests:
- list_item: id allocation, authorization, allowlist, single active listing
- set_buy_now_price / set_min_price
- delist and relisting
- get_item / items
"""

import pytest

from marketplace import (
    NotAuthorized, AlreadyListed, ContractNotAccepted, NotItemOwner,
    ItemNotFound, ItemNotLive, InvalidArgument, NotificationKind,
)

from tests.helpers import ADMIN, CREATOR, BUYER, COLLECTION


class TestListItem:
    """Tests for list_item()."""

    def test_first_item_id_is_one(self, market, punk):
        item_id = market.list_item(CREATOR, COLLECTION, punk, 10, 20)
        assert item_id == 1

    def test_record_fields(self, market, listed, punk):
        item = market.get_item(listed)
        assert item.owner == CREATOR
        assert item.asset.collection == COLLECTION
        assert item.asset.instance == punk
        assert item.min_price == 10
        assert item.buy_now_price == 20
        assert item.live and not item.sold
        assert item.is_active

    def test_item_ids_are_monotonic(self, market, assets):
        first = assets.mint(COLLECTION, CREATOR)
        second = assets.mint(COLLECTION, CREATOR)
        assert market.list_item(CREATOR, COLLECTION, first, 0, 0) == 1
        assert market.list_item(CREATOR, COLLECTION, second, 0, 0) == 2

    def test_non_owner_cannot_list(self, market, punk):
        with pytest.raises(NotAuthorized):
            market.list_item(BUYER, COLLECTION, punk, 10, 20)
        assert market.items() == ()

    def test_unknown_asset_cannot_be_listed(self, market):
        with pytest.raises(NotAuthorized):
            market.list_item(CREATOR, COLLECTION, 42, 10, 20)

    def test_approved_principal_can_list(self, market, assets, punk):
        """The approved principal becomes owner-of-record."""
        assets.approve(CREATOR, "agent", COLLECTION, punk)
        item_id = market.list_item("agent", COLLECTION, punk, 10, 20)
        assert market.get_item(item_id).owner == "agent"

    def test_already_listed(self, market, listed, punk):
        with pytest.raises(AlreadyListed):
            market.list_item(CREATOR, COLLECTION, punk, 5, 5)
        assert len(market.items()) == 1

    def test_allowlist_rejects_other_collections(self, market, assets):
        market.restrict_to_contract(ADMIN, "apes")
        punk = assets.mint(COLLECTION, CREATOR)
        with pytest.raises(ContractNotAccepted):
            market.list_item(CREATOR, COLLECTION, punk, 10, 20)

    def test_allowlist_accepts_listed_collection(self, market, assets):
        market.restrict_to_contract(ADMIN, "apes")
        ape = assets.mint("apes", CREATOR)
        assert market.list_item(CREATOR, "apes", ape, 10, 20) == 1

    @pytest.mark.parametrize("min_price,buy_now", [(-1, 20), (10, -5), (1.5, 20), (10, "20")])
    def test_invalid_prices(self, market, punk, min_price, buy_now):
        with pytest.raises(InvalidArgument):
            market.list_item(CREATOR, COLLECTION, punk, min_price, buy_now)

    @pytest.mark.parametrize("collection,instance", [("", 1), (None, 1), (COLLECTION, "1"), (COLLECTION, True)])
    def test_malformed_asset_reference(self, market, punk, collection, instance):
        with pytest.raises(InvalidArgument):
            market.list_item(CREATOR, collection, instance, 10, 20)

    def test_zero_prices_allowed(self, market, punk):
        item_id = market.list_item(CREATOR, COLLECTION, punk, 0, 0)
        assert market.get_item(item_id).buy_now_price == 0

    def test_emits_item_listed(self, market, listed, punk):
        [event] = market.notifications
        assert event.kind == NotificationKind.ITEM_LISTED
        assert event.item_id == listed
        assert event.params_dict == {
            'collection': COLLECTION,
            'instance': punk,
            'seller': CREATOR,
            'min_price': 10,
            'buy_now_price': 20,
        }


class TestUpdateTerms:
    """Tests for set_buy_now_price() and set_min_price()."""

    def test_set_buy_now_price(self, market, listed):
        updated = market.set_buy_now_price(CREATOR, listed, 25)
        assert updated.buy_now_price == 25
        assert market.get_item(listed).buy_now_price == 25
        assert market.notifications[-1].kind == NotificationKind.PRICE_CHANGED

    def test_zero_disables_buy_now(self, market, listed):
        market.set_buy_now_price(CREATOR, listed, 0)
        assert market.get_item(listed).buy_now_price == 0

    def test_set_buy_now_price_non_owner(self, market, listed):
        with pytest.raises(NotItemOwner):
            market.set_buy_now_price(BUYER, listed, 25)
        assert market.get_item(listed).buy_now_price == 20

    def test_set_buy_now_price_unknown_item(self, market):
        with pytest.raises(ItemNotFound):
            market.set_buy_now_price(CREATOR, 99, 25)

    def test_set_buy_now_price_negative(self, market, listed):
        with pytest.raises(InvalidArgument):
            market.set_buy_now_price(CREATOR, listed, -1)

    def test_set_min_price(self, market, listed):
        market.set_min_price(CREATOR, listed, 12)
        item = market.get_item(listed)
        assert item.min_price == 12
        assert item.buy_now_price == 20

    def test_set_min_price_after_delist(self, market, listed):
        market.delist(CREATOR, listed)
        with pytest.raises(ItemNotLive):
            market.set_min_price(CREATOR, listed, 12)


class TestDelist:
    """Tests for delist()."""

    def test_delist(self, market, listed):
        item = market.delist(CREATOR, listed)
        assert not item.live
        assert not item.sold
        assert not market.get_item(listed).is_active
        assert market.notifications[-1].kind == NotificationKind.ITEM_DELISTED

    def test_delist_non_owner(self, market, listed):
        with pytest.raises(NotItemOwner):
            market.delist(BUYER, listed)
        assert market.get_item(listed).live

    def test_delist_twice(self, market, listed):
        market.delist(CREATOR, listed)
        with pytest.raises(ItemNotLive):
            market.delist(CREATOR, listed)

    def test_relist_after_delist(self, market, listed, punk):
        market.delist(CREATOR, listed)
        new_id = market.list_item(CREATOR, COLLECTION, punk, 5, 8)
        assert new_id == listed + 1
        assert market.get_item(listed).live is False
        assert market.active_items() == (market.get_item(new_id),)


class TestReads:
    """Tests for get_item() and items()."""

    def test_get_item_unknown(self, market):
        with pytest.raises(ItemNotFound):
            market.get_item(1)

    @pytest.mark.parametrize("item_id", [0, -1, "1", None, True])
    def test_get_item_bad_ids(self, market, listed, item_id):
        with pytest.raises(ItemNotFound):
            market.get_item(item_id)

    def test_items_in_id_order(self, market, assets):
        for _ in range(3):
            market.list_item(CREATOR, COLLECTION, assets.mint(COLLECTION, CREATOR), 1, 2)
        assert [item.item_id for item in market.items()] == [1, 2, 3]
