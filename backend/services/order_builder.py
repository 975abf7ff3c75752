# backend/services/order_builder.py
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from services.catalog import ValidatedItem

CENT = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return money(unit_price * quantity)


@dataclass
class StoreGroup:
    store_id: int
    items: List[ValidatedItem] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return money(sum((line_total(i.quantity, i.unit_price) for i in self.items), Decimal("0")))

    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)


# Split validated items into one group per store, stores in order of first appearance
def group_by_store(items: List[ValidatedItem]) -> List[StoreGroup]:
    groups: Dict[int, StoreGroup] = {}
    for item in items:
        if item.store_id not in groups:
            groups[item.store_id] = StoreGroup(store_id=item.store_id)
        groups[item.store_id].items.append(item)
    return list(groups.values())
