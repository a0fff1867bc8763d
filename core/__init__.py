"""
Core package for the restaurant ordering system
Contains the pure cart, order status, cancellation and caching logic
"""

from .cart import CartAggregator
from .cache import MISS, ReadThroughCache
from .cancellation import CancellationDecision, CancellationPolicy
from .status_machine import next_status, next_status_label
from .errors import (
    EmptyCartError, OrderingError, OrderNotFound, PolicyDenied, RemoteError, ValidationError
)

__all__ = [
    'CartAggregator',
    'MISS', 'ReadThroughCache',
    'CancellationDecision', 'CancellationPolicy',
    'next_status', 'next_status_label',
    'EmptyCartError', 'OrderingError', 'OrderNotFound', 'PolicyDenied', 'RemoteError',
    'ValidationError'
]
