"""
Checkout flow: Details -> Payment -> Confirmation.

The machine reads the cart through the reconciler, keeps its own snapshot of
the lines being ordered, and creates the order with a single POST. A failed
order leaves the cart, the snapshot and the pending checkout record untouched,
so retrying is just calling ``submit_payment`` again.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Awaitable, Callable

from edumall.core.config import CheckoutConfig
from edumall.core.exceptions import (
    AuthenticationRequired,
    CheckoutTransitionError,
    NetworkError,
    OrderCreationError,
)
from edumall.core.order_math import calc_delivery_fee, calc_items_total, calc_total_price
from edumall.domain.cart import CartItem
from edumall.domain.checkout import (
    DeliveryDetails,
    PaymentDetails,
    PendingCheckoutDetails,
    PendingPayment,
    build_order_payload,
    parse_delivery_details,
)
from edumall.domain.checkout_fsm import CheckoutStep, validate_checkout_transition
from edumall.integrations.orders_client import (
    OrderClient,
    PayOnDeliveryConfirmation,
    PendingOrderStatus,
)
from edumall.services.cart_reconciler import CartMode, CartReconciler
from edumall.services.ports import ANONYMOUS, AuthState, Notifier, Router
from logging_config import logger

CART_PATH = "/cart"
LOGIN_PATH = "/login"

PENDING_ORDER_MESSAGE = "You have a pending order. Please confirm payment before proceeding."


class CheckoutStateMachine:
    def __init__(
        self,
        cart: CartReconciler,
        orders: OrderClient,
        router: Router,
        config: CheckoutConfig,
        notifier: Notifier | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cart = cart
        self.orders = orders
        self.router = router
        self.config = config
        self.notifier = notifier or cart.notifier
        self._sleep = sleep

        self.step: CheckoutStep | None = None
        self.items: list[CartItem] = []
        self.delivery_details: DeliveryDetails | None = None
        self.delivery_fee = 0
        self.order_id: str | None = None
        self.pending_order: PendingOrderStatus | None = None
        self.is_processing = False
        self.error: str | None = None
        self._auth = ANONYMOUS
        self._checkout_id: str | None = None

    # ---- derived values ----

    @property
    def subtotal(self) -> int:
        return calc_items_total(self.items)

    @property
    def total(self) -> int:
        return calc_total_price(self.subtotal, self.delivery_fee)

    def _transition(self, target: CheckoutStep, *, resuming: bool = False) -> None:
        result = validate_checkout_transition(
            current=self.step,
            target=target,
            item_count=len(self.items),
            resuming=resuming,
        )
        if not result.allowed:
            current = self.step.value if self.step is not None else None
            raise CheckoutTransitionError(current, target.value, result.reason or "Not allowed")
        logger.info(
            "Checkout step %s -> %s",
            self.step.value if self.step is not None else "outside",
            target.value,
        )
        self.step = target

    def _leave_for_cart(self) -> None:
        self.step = None
        self.router.navigate(CART_PATH)

    # ---- entry ----

    async def start(self, auth: AuthState | None = None) -> CheckoutStep | None:
        """Enter checkout; returns the starting step or ``None`` when redirected out."""
        self._auth = auth or self.cart.auth
        self.step = None
        self.error = None
        self._checkout_id = uuid.uuid4().hex

        pending = self.cart.pending_checkout_details
        if self._auth.is_bound and pending is not None:
            return await self._resume(pending)

        self.items = self.cart.items
        if not self.items:
            logger.info("Checkout entry refused: cart is empty")
            self._leave_for_cart()
            return None

        self._transition(CheckoutStep.DETAILS)
        await self._check_pending_order()
        return self.step

    async def _resume(self, pending: PendingCheckoutDetails) -> CheckoutStep | None:
        """Login finished with checkout data in flight: go straight to payment.

        The order covers the merged bound cart, so a successful order never
        clears lines that were not part of it.
        """
        if self.cart.mode is not CartMode.BOUND:
            await self.cart.on_auth_change(self._auth)
        await self.cart.merge_guest_cart()
        self.cart.clear_pending_checkout()

        self.items = self.cart.items or list(pending.items or [])
        if not self.items:
            self._leave_for_cart()
            return None

        if pending.delivery_details is None:
            self._transition(CheckoutStep.DETAILS)
        else:
            self.delivery_details = pending.delivery_details
            self.delivery_fee = calc_delivery_fee(
                pending.delivery_details.delivery_fee,
                default_fee=self.config.default_delivery_fee,
            )
            self._transition(CheckoutStep.PAYMENT, resuming=True)
            logger.info("Checkout resumed at payment after login")
        await self._check_pending_order()
        return self.step

    async def _check_pending_order(self) -> None:
        token = self._auth.token if self._auth.is_bound else None
        if not token:
            return
        try:
            status = await self.orders.fetch_pending_order(token)
        except NetworkError as exc:
            logger.warning("Pending order check failed: %s", exc.message)
            return
        if status.pending:
            self.pending_order = status
            self.notifier.error(PENDING_ORDER_MESSAGE)

    # ---- transitions ----

    def submit_details(
        self,
        details: DeliveryDetails | dict[str, Any],
        auth: AuthState | None = None,
    ) -> CheckoutStep:
        """Details -> Payment.

        Raises:
            ValidationException: required fields missing or malformed
            CheckoutTransitionError: not at the details step, or the cart is empty
        """
        if auth is not None:
            self._auth = auth
        if self.step is not CheckoutStep.DETAILS:
            current = self.step.value if self.step is not None else None
            raise CheckoutTransitionError(current, CheckoutStep.PAYMENT.value, "Not at the details step.")
        if not self.items:
            self._leave_for_cart()
            raise CheckoutTransitionError(
                CheckoutStep.DETAILS.value, CheckoutStep.PAYMENT.value, "Your cart is empty."
            )

        parsed = parse_delivery_details(details)
        fee = calc_delivery_fee(parsed.delivery_fee, default_fee=self.config.default_delivery_fee)

        if not self._auth.is_bound:
            self.cart.save_pending_checkout(
                PendingCheckoutDetails(delivery_details=parsed, items=list(self.items))
            )

        self.delivery_details = parsed
        self.delivery_fee = fee
        self._transition(CheckoutStep.PAYMENT)
        return self.step

    async def submit_payment(
        self,
        payment: PaymentDetails | dict[str, Any],
        auth: AuthState | None = None,
    ) -> str:
        """Payment -> Confirmation; returns the created order id.

        Raises:
            AuthenticationRequired: the user must log in first (redirected)
            OrderCreationError: the order was not created; the cart is intact
            CheckoutTransitionError: not at the payment step
        """
        if auth is not None:
            self._auth = auth
        if isinstance(payment, dict):
            payment = PaymentDetails.from_dict(payment)
        if self.step is not CheckoutStep.PAYMENT or self.delivery_details is None:
            current = self.step.value if self.step is not None else None
            raise CheckoutTransitionError(
                current, CheckoutStep.CONFIRMATION.value, "Not at the payment step."
            )
        if self.is_processing:
            raise CheckoutTransitionError(
                CheckoutStep.PAYMENT.value,
                CheckoutStep.CONFIRMATION.value,
                "Your order is already being placed.",
            )

        token = self._auth.token if self._auth.is_bound else None
        if not token:
            self.router.navigate(LOGIN_PATH)
            raise AuthenticationRequired("Please log in to complete your order.")

        if self.pending_order is not None and self.pending_order.pending:
            self.notifier.error(PENDING_ORDER_MESSAGE)
            raise OrderCreationError(PENDING_ORDER_MESSAGE)

        if not self.items:
            self._leave_for_cart()
            raise CheckoutTransitionError(
                CheckoutStep.PAYMENT.value, CheckoutStep.CONFIRMATION.value, "Your cart is empty."
            )

        payload = build_order_payload(self.items, self.delivery_details, payment, self.delivery_fee)
        self.is_processing = True
        self.error = None
        try:
            order_id = await self.orders.create_order(
                token, payload, checkout_id=self._checkout_id
            )
        except NetworkError as exc:
            self.error = exc.message
            logger.warning("Order placement failed: %s", exc.message)
            self.notifier.error("Order placement failed. Please try again.")
            raise OrderCreationError(f"Order placement failed: {exc.message}") from exc
        finally:
            self.is_processing = False

        self.order_id = order_id
        self._transition(CheckoutStep.CONFIRMATION)
        logger.info("Order %s created (%s)", order_id, payment.payment_status)

        await self.cart.clear_cart()
        self.cart.clear_pending_checkout()
        self.items = []
        if payment.is_settled:
            self.cart.local.clear_pending_payment()
        else:
            self.cart.local.save_pending_payment(
                PendingPayment(order_id=order_id, method=payment.method, amount=payment.amount)
            )

        self.notifier.success(f"Order #{order_id} placed successfully")
        await self._redirect_after_delay()
        return order_id

    async def confirm_pay_on_delivery(
        self, auth: AuthState | None = None
    ) -> PayOnDeliveryConfirmation:
        """Confirm a pay-on-delivery order left pending on the server.

        Raises:
            AuthenticationRequired: no bound session
            NetworkError: the confirmation call failed
        """
        if auth is not None:
            self._auth = auth
        token = self._auth.token if self._auth.is_bound else None
        if not token:
            self.router.navigate(LOGIN_PATH)
            raise AuthenticationRequired("Please log in to confirm your order.")

        try:
            confirmation = await self.orders.confirm_pay_on_delivery(token)
        except NetworkError as exc:
            self.error = exc.message
            self.notifier.error(exc.message or "Confirmation failed.")
            raise

        self.order_id = confirmation.order_id or self.order_id
        self.pending_order = None
        await self.cart.clear_cart()
        self.cart.local.clear_pending_payment()
        self.items = []
        self.notifier.success(confirmation.message)
        await self._redirect_after_delay()
        return confirmation

    async def _redirect_after_delay(self) -> None:
        # Let consumers observe the confirmation before leaving the page.
        if self.config.redirect_delay > 0:
            await self._sleep(self.config.redirect_delay)
        self.router.navigate(self.config.post_order_path)
