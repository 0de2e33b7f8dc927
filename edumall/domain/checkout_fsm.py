"""Checkout step transition rules (single source of truth)."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class CheckoutStep(str, Enum):
    DETAILS = "details"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


# ``None`` is "outside checkout". Entering straight into PAYMENT is only the
# post-login resumption edge.
ALLOWED_TRANSITIONS: Mapping[CheckoutStep | None, frozenset[CheckoutStep]] = {
    None: frozenset({CheckoutStep.DETAILS, CheckoutStep.PAYMENT}),
    CheckoutStep.DETAILS: frozenset({CheckoutStep.PAYMENT}),
    CheckoutStep.PAYMENT: frozenset({CheckoutStep.CONFIRMATION}),
    CheckoutStep.CONFIRMATION: frozenset(),
}

TERMINAL_STEPS = frozenset({CheckoutStep.CONFIRMATION})

CART_REQUIRED_STEPS = frozenset({CheckoutStep.DETAILS, CheckoutStep.PAYMENT})


@dataclass(frozen=True, slots=True)
class TransitionValidationResult:
    allowed: bool
    reason: str | None = None


def validate_checkout_transition(
    *,
    current: CheckoutStep | None,
    target: CheckoutStep,
    item_count: int,
    resuming: bool = False,
) -> TransitionValidationResult:
    """Validate the transition table, the empty-cart guard and the resume edge."""
    if current in TERMINAL_STEPS:
        return TransitionValidationResult(False, "Checkout is already complete.")

    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        source = current.value if current is not None else "outside"
        return TransitionValidationResult(False, f"Transition '{source} -> {target.value}' is not allowed.")

    if current is None and target is CheckoutStep.PAYMENT and not resuming:
        return TransitionValidationResult(False, "Delivery details are required before payment.")

    if target in CART_REQUIRED_STEPS and item_count <= 0:
        return TransitionValidationResult(False, "Your cart is empty.")

    return TransitionValidationResult(True)
