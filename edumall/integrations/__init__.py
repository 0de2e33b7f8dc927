"""Integrations package - storage and REST adapters."""

from edumall.integrations.api_client import ApiClient
from edumall.integrations.orders_client import OrderClient
from edumall.integrations.redis_storage import KeyValueStore
from edumall.integrations.remote_cart import RemoteCartClient

__all__ = [
    "ApiClient",
    "KeyValueStore",
    "OrderClient",
    "RemoteCartClient",
]
