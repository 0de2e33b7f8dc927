"""Domain package."""

from .cart import ApiCartItem, CartItem, cart_count, cart_total
from .checkout import (
    Coordinates,
    DeliveryDetails,
    PaymentDetails,
    PendingCheckoutDetails,
    PendingPayment,
)
from .checkout_fsm import CheckoutStep, validate_checkout_transition

__all__ = [
    "ApiCartItem",
    "CartItem",
    "CheckoutStep",
    "Coordinates",
    "DeliveryDetails",
    "PaymentDetails",
    "PendingCheckoutDetails",
    "PendingPayment",
    "cart_count",
    "cart_total",
    "validate_checkout_transition",
]
