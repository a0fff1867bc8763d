"""
Menu catalog data models
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any


@dataclass
class FoodItem:
    """Menu item data model (price in minor units)"""
    id: str
    name: str
    price: int
    category: Optional[str] = None
    description: Optional[str] = None
    is_available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "description": self.description,
            "is_available": self.is_available
        }


@dataclass
class ItemSize:
    """Size option for a menu item"""
    id: str
    food_item_id: str
    name: str
    price_modifier: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "food_item_id": self.food_item_id,
            "name": self.name,
            "price_modifier": self.price_modifier
        }
