"""
Cart aggregation and checkout snapshots.
"""

from decimal import Decimal

import pytest

from kitchen_oms.cart.cart import Cart, CatalogItem, compute_tax
from kitchen_oms.core.exceptions import EmptyCartError, ValidationError
from kitchen_oms.core.money import Money

TIKKA = CatalogItem(item_id="paneer-tikka", name="Paneer Tikka", price=Money(10000))
LASSI = CatalogItem(item_id="lassi", name="Sweet Lassi", price=Money(5000))
SOLD_OUT = CatalogItem(item_id="biryani", name="Biryani", price=Money(25000), available=False)


class TestCartLines:

    def test_repeated_add_increments_quantity(self):
        cart = Cart()
        cart.add_item(TIKKA)
        cart.add_item(TIKKA)
        assert cart.quantity_of("paneer-tikka") == 2
        assert cart.item_count() == 2

    def test_set_quantity_replaces(self):
        cart = Cart([TIKKA])
        cart.set_quantity("paneer-tikka", 5)
        assert cart.quantity_of("paneer-tikka") == 5

    def test_set_quantity_below_one_removes_line(self):
        cart = Cart([TIKKA, LASSI])
        cart.set_quantity("lassi", 0)
        assert cart.quantity_of("lassi") == 0
        assert cart.item_count() == 1

    def test_set_quantity_for_missing_item(self):
        with pytest.raises(ValidationError):
            Cart().set_quantity("lassi", 2)

    def test_unavailable_item_rejected(self):
        with pytest.raises(ValidationError):
            Cart().add_item(SOLD_OUT)

    def test_remove_and_clear(self):
        cart = Cart([TIKKA, LASSI])
        cart.remove_item("lassi")
        cart.remove_item("unknown")
        assert cart.item_count() == 1
        cart.clear()
        assert cart.is_empty()


class TestCartTotals:

    def test_total_is_price_times_quantity(self):
        cart = Cart([TIKKA, TIKKA, LASSI])
        assert cart.total() == Money(25000)

    def test_empty_cart_total_is_zero(self):
        assert Cart().total() == Money.zero()

    def test_snapshot_for_checkout(self):
        cart = Cart([TIKKA, TIKKA, LASSI])
        snapshot = cart.snapshot_for_checkout(Decimal("5"))

        assert [(item.catalog_item_id, item.quantity) for item in snapshot.items] == [("paneer-tikka", 2), ("lassi", 1)]
        assert snapshot.items[0].subtotal == Money(20000)
        assert snapshot.subtotal == Money(25000)
        assert snapshot.tax == Money(1250)
        assert snapshot.total == Money(26250)

    def test_snapshot_is_detached_from_cart(self):
        cart = Cart([TIKKA])
        snapshot = cart.snapshot_for_checkout(Decimal("5"))
        cart.add_item(TIKKA)
        assert snapshot.items[0].quantity == 1

    def test_snapshot_of_empty_cart(self):
        cart = Cart([LASSI])
        cart.set_quantity("lassi", 0)
        with pytest.raises(EmptyCartError):
            cart.snapshot_for_checkout(Decimal("5"))

    def test_compute_tax_rounds_half_up(self):
        assert compute_tax(Money(95238), Decimal("5")) == Money(4762)
