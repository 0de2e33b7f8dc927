"""Storefront bootstrap wiring storage, REST clients and services."""
from __future__ import annotations

from dataclasses import dataclass

from edumall.core.config import Settings
from edumall.integrations.api_client import ApiClient
from edumall.integrations.orders_client import OrderClient
from edumall.integrations.redis_storage import KeyValueStore
from edumall.integrations.remote_cart import RemoteCartClient
from edumall.services.cart_reconciler import CartReconciler
from edumall.services.checkout_service import CheckoutStateMachine
from edumall.services.local_cart_store import LocalCartStore
from edumall.services.pending_checkout import PendingCheckoutStore
from edumall.services.ports import LoggingNotifier, Notifier, RecordingRouter, Router
from logging_config import logger


@dataclass
class Storefront:
    api: ApiClient
    cart: CartReconciler
    checkout: CheckoutStateMachine

    async def close(self) -> None:
        await self.api.close()


def build_storefront(
    settings: Settings,
    *,
    notifier: Notifier | None = None,
    router: Router | None = None,
    storage: KeyValueStore | None = None,
    api: ApiClient | None = None,
) -> Storefront:
    """Create the cart and checkout runtime from configuration."""
    if storage is None:
        storage = KeyValueStore(settings.redis_url, namespace=settings.storage_namespace)
    if storage.uses_redis:
        logger.info("Using Redis for cart storage")
    else:
        logger.info("Using in-memory cart storage (lost on restart)")

    notifier = notifier or LoggingNotifier()
    api = api or ApiClient(settings.api)
    local = LocalCartStore(storage)
    cart = CartReconciler(
        local,
        RemoteCartClient(api),
        PendingCheckoutStore(local),
        notifier,
        clear_retry_passes=settings.clear_retry_passes,
    )
    checkout = CheckoutStateMachine(
        cart,
        OrderClient(api),
        router or RecordingRouter(),
        settings.checkout,
        notifier=notifier,
    )
    return Storefront(api=api, cart=cart, checkout=checkout)
