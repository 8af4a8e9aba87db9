"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .store import KeyValueStore
from .keys import StorageKeys
from .order_gateway import CartHandoff, OrderGateway
from .store_factory import get_store, get_order_gateway, close_infrastructure

__all__ = [
    'KeyValueStore', 'StorageKeys', 'CartHandoff', 'OrderGateway',
    'get_store', 'get_order_gateway', 'close_infrastructure',
]
