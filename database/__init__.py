"""
Database package for the restaurant ordering system
Contains the SQLite order store: connection and repository classes
"""

from .connection import DatabaseConnection
from .repository import CatalogRepository, CartRepository, OrderRepository

__all__ = [
    'DatabaseConnection',
    'CatalogRepository', 'CartRepository', 'OrderRepository'
]
