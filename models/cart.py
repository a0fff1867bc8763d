"""
Cart related data models
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any, Tuple

# 사이즈가 없는 상품의 라인 키에 쓰는 값
NO_SIZE = "-"

LineKey = Tuple[str, str]


def line_key(food_item_id: str, size_id: Optional[str] = None) -> LineKey:
    """Identity of a cart line: (food item id, size id or NO_SIZE)"""
    return (food_item_id, size_id or NO_SIZE)


def format_line_key(key: LineKey) -> str:
    """Render a line key as a single path-safe token"""
    return f"{key[0]}:{key[1]}"


def parse_line_key(token: str) -> LineKey:
    """Inverse of format_line_key"""
    food_item_id, _, size_part = token.partition(":")
    return (food_item_id, size_part or NO_SIZE)


@dataclass
class CartLine:
    """Cart line data model"""
    food_item_id: str
    name: str
    unit_price: int
    quantity: int
    size_id: Optional[str] = None
    size_name: Optional[str] = None
    note: Optional[str] = None

    @property
    def key(self) -> LineKey:
        return line_key(self.food_item_id, self.size_id)

    @property
    def total(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "key": format_line_key(self.key),
            "food_item_id": self.food_item_id,
            "name": self.name,
            "size_id": self.size_id,
            "size_name": self.size_name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "total": self.total,
            "note": self.note
        }


@dataclass
class CartSummary:
    """Cart summary data model"""
    total_items: int
    count: int
    total: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "total_items": self.total_items,
            "count": self.count,
            "total": self.total
        }
