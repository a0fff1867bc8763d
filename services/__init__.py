"""
Services package for the restaurant ordering system
Contains business logic services
"""

from .catalog_service import CatalogService
from .cart_service import CartService, MutationResult
from .order_service import OrderService, OrderSubmissionAdapter

__all__ = [
    'CatalogService', 'CartService', 'MutationResult',
    'OrderService', 'OrderSubmissionAdapter'
]
