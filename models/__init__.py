"""
Models package for the restaurant ordering core
Contains data models and type definitions
"""

from .catalog import FoodItem, ItemSize
from .cart import CartLine, CartSummary, LineKey, line_key, format_line_key, parse_line_key
from .order import (
    Actor, ActorRole, CancellationRecord, CustomerInfo, Order, OrderLine,
    OrderSource, OrderStatus, OrderType, PaymentMethod, StatusHistoryEntry
)

__all__ = [
    'FoodItem', 'ItemSize',
    'CartLine', 'CartSummary', 'LineKey', 'line_key', 'format_line_key', 'parse_line_key',
    'Actor', 'ActorRole', 'CancellationRecord', 'CustomerInfo', 'Order', 'OrderLine',
    'OrderSource', 'OrderStatus', 'OrderType', 'PaymentMethod', 'StatusHistoryEntry'
]
