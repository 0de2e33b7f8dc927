"""Cart and checkout services orchestrating domain logic."""

from .cart_reconciler import CartMode, CartReconciler, ClearCartResult, MergeResult
from .checkout_service import CheckoutStateMachine
from .local_cart_store import LocalCartStore
from .pending_checkout import PendingCheckoutStore
from .ports import AuthState, Notifier, Router

__all__ = [
    "AuthState",
    "CartMode",
    "CartReconciler",
    "CheckoutStateMachine",
    "ClearCartResult",
    "LocalCartStore",
    "MergeResult",
    "Notifier",
    "PendingCheckoutStore",
    "Router",
]
