"""
Cart aggregation.

A Cart is the mutable, request-owned selection a customer builds before
checkout. `snapshot_for_checkout` freezes it into the item lines and
amounts an order is created from.
"""
from dataclasses import dataclass
from decimal import Decimal

from kitchen_oms.core.exceptions import EmptyCartError, ValidationError
from kitchen_oms.core.money import Money


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """Catalog entry as returned by the catalog lookup"""
    item_id: str
    name: str
    price: Money
    available: bool = True


@dataclass(frozen=True, slots=True)
class OrderItemSnapshot:
    catalog_item_id: str
    name: str
    unit_price: Money
    quantity: int

    @property
    def subtotal(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CheckoutSnapshot:
    items: tuple[OrderItemSnapshot, ...]
    subtotal: Money
    tax_rate: Decimal
    tax: Money

    @property
    def total(self) -> Money:
        return self.subtotal + self.tax


def compute_tax(subtotal: Money, tax_rate: Decimal) -> Money:
    """Flat-rate tax on the subtotal, half-up to the paisa"""
    return subtotal.percent(tax_rate)


class Cart:
    def __init__(self, items: list[CatalogItem] | None = None):
        # item_id -> [CatalogItem, quantity], insertion ordered
        self._lines: dict[str, list] = {}
        for item in items or []:
            self.add_item(item)

    def add_item(self, catalog_item: CatalogItem) -> None:
        """Add one unit. Repeated adds of the same item increment its quantity."""
        if not catalog_item.available:
            raise ValidationError(f"Item {catalog_item.name} is not available")
        line = self._lines.get(catalog_item.item_id)
        if line is None:
            self._lines[catalog_item.item_id] = [catalog_item, 1]
        else:
            line[1] += 1

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Quantities below one remove the line"""
        if item_id not in self._lines:
            raise ValidationError(f"Item {item_id} is not in the cart")
        if quantity < 1:
            del self._lines[item_id]
        else:
            self._lines[item_id][1] = quantity

    def remove_item(self, item_id: str) -> None:
        self._lines.pop(item_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def quantity_of(self, item_id: str) -> int:
        line = self._lines.get(item_id)
        return line[1] if line else 0

    def item_count(self) -> int:
        return sum(quantity for _, quantity in self._lines.values())

    def is_empty(self) -> bool:
        return not self._lines

    def total(self) -> Money:
        return sum((item.price * quantity for item, quantity in self._lines.values()), Money.zero())

    def snapshot_for_checkout(self, tax_rate: Decimal) -> CheckoutSnapshot:
        if self.is_empty():
            raise EmptyCartError("Cart is empty")
        items = tuple(
            OrderItemSnapshot(
                catalog_item_id=item.item_id,
                name=item.name,
                unit_price=item.price,
                quantity=quantity,
            )
            for item, quantity in self._lines.values()
        )
        subtotal = self.total()
        return CheckoutSnapshot(
            items=items,
            subtotal=subtotal,
            tax_rate=Decimal(tax_rate),
            tax=compute_tax(subtotal, tax_rate),
        )
