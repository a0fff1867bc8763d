"""
In-memory cart that consolidates additions by (food item, size)
"""
import copy
from typing import Dict, List, Optional

from models.cart import CartLine, CartSummary, LineKey, line_key
from models.catalog import FoodItem, ItemSize
from .errors import ValidationError


class CartAggregator:
    """Ordered collection of cart lines, at most one per (item, size) key.

    Unit prices are fixed when a line is first created; later catalog price
    changes only affect lines added afterwards.
    """

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self._lines: Dict[LineKey, CartLine] = {}
        for line in lines or []:
            self._lines[line.key] = line

    def add_line(self, item: FoodItem, size: Optional[ItemSize] = None,
                 quantity: int = 1, note: Optional[str] = None) -> CartLine:
        if quantity <= 0:
            raise ValidationError(["quantity"], "Quantity must be at least 1")
        if size is not None and size.food_item_id != item.id:
            raise ValidationError(["size_id"], f"Size {size.id} does not belong to {item.id}")

        key = line_key(item.id, size.id if size else None)
        line = self._lines.get(key)
        if line is not None:
            line.quantity += quantity
            if note is not None:
                line.note = note
            return line

        line = CartLine(
            food_item_id=item.id,
            name=item.name,
            unit_price=item.price + (size.price_modifier if size else 0),
            quantity=quantity,
            size_id=size.id if size else None,
            size_name=size.name if size else None,
            note=note
        )
        self._lines[key] = line
        return line

    def remove_line(self, key: LineKey) -> None:
        self._lines.pop(key, None)

    def set_quantity(self, key: LineKey, quantity: int) -> None:
        if quantity <= 0:
            self.remove_line(key)
            return
        line = self._lines.get(key)
        if line is not None:
            line.quantity = quantity

    def clear(self) -> None:
        self._lines.clear()

    def get(self, key: LineKey) -> Optional[CartLine]:
        return self._lines.get(key)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def total(self) -> int:
        return sum(line.total for line in self._lines.values())

    @property
    def count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def summary(self) -> CartSummary:
        return CartSummary(total_items=len(self._lines), count=self.count, total=self.total)

    def snapshot(self) -> List[CartLine]:
        """Deep copy of the current lines, for restore()"""
        return copy.deepcopy(self.lines)

    def restore(self, lines: List[CartLine]) -> None:
        self._lines = {line.key: line for line in copy.deepcopy(lines)}

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, key: object) -> bool:
        return key in self._lines
