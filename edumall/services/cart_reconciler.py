"""
Cart reconciliation between the guest (local) and bound (remote) carts.

The reconciler owns the cart. In guest mode the local store is the source of
truth; in bound mode the server is, and every remote mutation ends with a full
re-read so the in-memory lines are always the server's present state. Network
failures keep the last known-good lines and are reported through ``error`` and
the notifier instead of being raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from edumall.core.exceptions import NetworkError, PartialClearFailure, ValidationException
from edumall.core.idempotency import OneShotGuard
from edumall.domain.cart import (
    CartItem,
    ProductId,
    add_line,
    cart_count,
    cart_total,
    find_line,
    remove_line,
    set_line_quantity,
)
from edumall.domain.checkout import PendingCheckoutDetails
from edumall.integrations.remote_cart import RemoteCartClient
from edumall.services.local_cart_store import LocalCartStore
from edumall.services.pending_checkout import PendingCheckoutStore
from edumall.services.ports import ANONYMOUS, AuthState, LoggingNotifier, Notifier
from logging_config import logger


class CartMode(str, Enum):
    UNINITIALIZED = "uninitialized"
    GUEST = "guest"
    BOUND = "bound"


@dataclass
class ClearCartResult:
    """Which lines the server confirmed removed and which it kept."""

    succeeded: list[ProductId] = field(default_factory=list)
    failed: list[ProductId] = field(default_factory=list)
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class MergeResult:
    merged: list[ProductId] = field(default_factory=list)
    failed: list[ProductId] = field(default_factory=list)
    skipped: bool = False


def resolve_mode(auth: AuthState) -> CartMode:
    return CartMode.BOUND if auth.is_bound else CartMode.GUEST


class CartReconciler:
    """Single entry point for reading and mutating the cart."""

    def __init__(
        self,
        local: LocalCartStore,
        remote: RemoteCartClient,
        pending: PendingCheckoutStore | None = None,
        notifier: Notifier | None = None,
        *,
        clear_retry_passes: int = 1,
    ):
        self.local = local
        self.remote = remote
        self.pending = pending or PendingCheckoutStore(local)
        self.notifier = notifier or LoggingNotifier()
        self.clear_retry_passes = max(0, int(clear_retry_passes))

        self.error: str | None = None
        self._items: list[CartItem] = []
        self._mode = CartMode.UNINITIALIZED
        self._auth = ANONYMOUS
        self._in_flight = 0
        self._merge_guard = OneShotGuard()

    # ---- state ----

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    @property
    def mode(self) -> CartMode:
        return self._mode

    @property
    def auth(self) -> AuthState:
        return self._auth

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def is_initialized(self) -> bool:
        return self._mode is not CartMode.UNINITIALIZED

    @property
    def token(self) -> str | None:
        return self._auth.token if self._mode is CartMode.BOUND else None

    def get_cart_count(self) -> int:
        """Number of distinct lines; quantities are not summed."""
        return cart_count(self._items)

    def get_cart_total(self) -> int:
        return cart_total(self._items)

    # ---- pending checkout ----

    @property
    def pending_checkout_details(self) -> PendingCheckoutDetails | None:
        return self.pending.details

    def save_pending_checkout(self, details: PendingCheckoutDetails) -> PendingCheckoutDetails:
        return self.pending.save(details)

    def clear_pending_checkout(self) -> None:
        self.pending.clear()

    # ---- auth transitions ----

    async def initialize(self, auth: AuthState) -> None:
        """Load the cart for the current auth state.

        A bound start that still finds a guest cart in storage is a login that
        happened across a page load, so it is handled as a transition.
        """
        self.pending.load()
        if auth.is_bound and self.local.has_guest_cart():
            await self.on_auth_transition(auth)
            return
        self._auth = auth
        self._mode = resolve_mode(auth)
        logger.info("Cart initialized in %s mode", self._mode.value)
        await self._load_current()

    async def on_auth_change(self, auth: AuthState) -> None:
        previous = self._mode
        target = resolve_mode(auth)

        if previous is CartMode.UNINITIALIZED:
            await self.initialize(auth)
        elif previous is CartMode.GUEST and target is CartMode.BOUND:
            await self.on_auth_transition(auth)
        elif previous is CartMode.BOUND and target is CartMode.GUEST:
            self._on_logout(auth)
        elif target is CartMode.BOUND and auth.token != self._auth.token:
            self._auth = auth
            await self.refresh()
        else:
            self._auth = auth

    async def on_auth_transition(self, auth: AuthState) -> MergeResult:
        """Guest -> Bound: merge the guest cart once, then load the bound cart.

        The pending checkout record is kept; the checkout flow consumes it.
        """
        self._auth = auth
        self._mode = CartMode.BOUND
        # Guest lines are not bound lines, even if the re-read below fails.
        self._items = []
        logger.info("Cart switched to bound mode after login")
        result = await self.merge_guest_cart()
        if result.skipped:
            await self.refresh()
        return result

    def _on_logout(self, auth: AuthState) -> None:
        # Token is gone: local-only clear, no remote calls.
        self._auth = auth
        self._mode = CartMode.GUEST
        self._reset_local_state()
        logger.info("Cart switched to guest mode after logout")

    def _reset_local_state(self) -> None:
        self.local.clear_guest_cart()
        self.local.clear_pending_checkout()
        self.pending.forget()
        self._items = []

    async def _load_current(self) -> None:
        if self._mode is CartMode.BOUND:
            await self.refresh()
        else:
            self._items = self.local.load_guest_cart()

    async def refresh(self) -> bool:
        token = self.token
        if not token:
            self._items = self.local.load_guest_cart()
            return True
        return await self._apply_remote(lambda: self.remote.fetch_cart(token), "Failed to load cart")

    async def _apply_remote(
        self,
        operation: Callable[[], Awaitable[list[CartItem]]],
        failure_message: str,
    ) -> bool:
        self._in_flight += 1
        self.error = None
        try:
            items = await operation()
        except NetworkError as exc:
            self.error = exc.message
            logger.warning("%s: %s", failure_message, exc.message)
            self.notifier.error(f"{failure_message}. {exc.message}")
            return False
        finally:
            self._in_flight -= 1
        self._items = items
        return True

    # ---- mutations ----

    async def add_to_cart(self, item: CartItem, quantity: int = 1) -> bool:
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1", ["quantity"])

        token = self.token
        if token:
            ok = await self._apply_remote(
                lambda: self.remote.add_item(token, item.id, quantity),
                "Failed to add item to cart",
            )
        else:
            self._items = add_line(self._items, item, quantity)
            self.local.save_guest_cart(self._items)
            ok = True
        if ok:
            self.notifier.success(f"{item.name} added to cart")
        return ok

    async def remove_from_cart(self, product_id: ProductId) -> bool:
        if find_line(self._items, product_id) is None:
            return True

        token = self.token
        if token:
            return await self._apply_remote(
                lambda: self.remote.remove_item(token, product_id),
                "Failed to remove item from cart",
            )
        self._items = remove_line(self._items, product_id)
        self.local.save_guest_cart(self._items)
        return True

    async def update_quantity(self, product_id: ProductId, quantity: int) -> bool:
        if quantity <= 0:
            return await self.remove_from_cart(product_id)
        if find_line(self._items, product_id) is None:
            return True

        token = self.token
        if token:
            return await self._apply_remote(
                lambda: self.remote.update_item(token, product_id, quantity),
                "Failed to update quantity",
            )
        self._items = set_line_quantity(self._items, product_id, quantity)
        self.local.save_guest_cart(self._items)
        return True

    async def clear_cart(self) -> ClearCartResult:
        """Empty the cart.

        Bound carts have no bulk endpoint: lines are deleted concurrently, the
        cart is re-read, and up to ``clear_retry_passes`` further passes run
        over whatever the server still holds. Local state is cleared no matter
        what the server did.
        """
        result = ClearCartResult()
        token = self.token
        if token and self._items:
            original = [line.id for line in self._items]
            remaining = list(original)
            self._in_flight += 1
            try:
                for _ in range(1 + self.clear_retry_passes):
                    if not remaining:
                        break
                    result.attempts += 1
                    outcome = await self.remote.remove_items(token, remaining)
                    try:
                        server_items = await self.remote.fetch_cart(token)
                    except NetworkError as exc:
                        logger.warning("Cart re-read after clear failed: %s", exc.message)
                        remaining = outcome.failed
                    else:
                        remaining = [line.id for line in server_items]
            finally:
                self._in_flight -= 1

            result.failed = remaining
            result.succeeded = [pid for pid in original if pid not in remaining]
            if remaining:
                logger.warning("%s", PartialClearFailure(remaining).message)

        self._reset_local_state()
        self.error = None
        return result

    async def merge_guest_cart(self, idempotency_key: str | None = None) -> MergeResult:
        """Add every guest line to the bound cart, once per login.

        The guard key defaults to the auth token. Lines the server refused are
        written back to the guest cart and the guard is released so a later
        call retries only those lines.
        """
        token = self.token
        if not token:
            logger.info("Guest cart merge skipped: cart is not bound")
            return MergeResult(skipped=True)

        key = idempotency_key or token
        if not self._merge_guard.claim(key):
            logger.info("Guest cart merge already ran for this login; skipping")
            return MergeResult(skipped=True)

        guest_lines = self.local.load_guest_cart()
        result = MergeResult()
        if guest_lines:
            self._in_flight += 1
            try:
                outcome = await self.remote.add_items(token, guest_lines)
            finally:
                self._in_flight -= 1
            result.merged = outcome.succeeded
            result.failed = outcome.failed

        if result.failed:
            leftover = [line for line in guest_lines if line.id in result.failed]
            self.local.save_guest_cart(leftover)
            self._merge_guard.release(key)
            self.notifier.error("Some items from your guest cart could not be moved")
        else:
            self.local.clear_guest_cart()

        logger.info(
            "Merged guest cart: %s lines added, %s failed", len(result.merged), len(result.failed)
        )
        await self.refresh()
        return result
