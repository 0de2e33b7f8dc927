"""Shared pytest fixtures: in-memory storage, fake REST collaborators."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from edumall.core.config import CheckoutConfig
from edumall.core.exceptions import NetworkError
from edumall.domain.cart import CartItem
from edumall.integrations.orders_client import (
    PayOnDeliveryConfirmation,
    PendingOrderStatus,
)
from edumall.integrations.redis_storage import KeyValueStore
from edumall.integrations.remote_cart import BatchOutcome
from edumall.services.cart_reconciler import CartReconciler
from edumall.services.checkout_service import CheckoutStateMachine
from edumall.services.local_cart_store import LocalCartStore
from edumall.services.pending_checkout import PendingCheckoutStore
from edumall.services.ports import AuthState, RecordingRouter

GUEST = AuthState()
BOUND = AuthState(token="token-1", is_authenticated=True)


def make_item(product_id: int, price: int = 5000, quantity: int = 1, **extra) -> CartItem:
    return CartItem(
        id=product_id,
        name=f"Product {product_id}",
        price=price,
        quantity=quantity,
        image=f"/img/{product_id}.png",
        **extra,
    )


@dataclass
class FakeRedisClient:
    data: dict[str, str] = field(default_factory=dict)
    expiry: dict[str, int] = field(default_factory=dict)
    broken: bool = False

    def _check(self) -> None:
        if self.broken:
            raise ConnectionError("redis is down")

    def ping(self) -> bool:
        self._check()
        return True

    def get(self, key: str):
        self._check()
        return self.data.get(key)

    def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self.data[key] = value
        self.expiry[key] = ttl
        return True

    def delete(self, key: str) -> int:
        self._check()
        existed = 1 if key in self.data else 0
        self.data.pop(key, None)
        self.expiry.pop(key, None)
        return existed


@dataclass
class FakeRemoteCart:
    """Server-side cart kept in a dict, with failure injection."""

    catalog: dict[int, CartItem] = field(default_factory=dict)
    lines: dict[int, int] = field(default_factory=dict)
    calls: list[tuple] = field(default_factory=list)
    fail_all: bool = False
    fail_fetch: bool = False
    # product id -> number of remaining failing deletes (-1 = always)
    failing_deletes: dict[int, int] = field(default_factory=dict)
    failing_adds: set[int] = field(default_factory=set)

    def _maybe_fail(self) -> None:
        if self.fail_all:
            raise NetworkError("Could not reach the server. Check your connection.")

    def _line(self, product_id: int, quantity: int) -> CartItem:
        base = self.catalog.get(product_id) or make_item(product_id)
        return CartItem(
            id=product_id,
            name=base.name,
            price=base.price,
            quantity=quantity,
            image=base.image,
            category=base.category,
            unit=base.unit,
        )

    def _add(self, product_id: int, quantity: int) -> None:
        self.calls.append(("add", product_id, quantity))
        self._maybe_fail()
        if product_id in self.failing_adds:
            raise NetworkError("Product is unavailable", status=409)
        self.lines[product_id] = self.lines.get(product_id, 0) + quantity

    def _delete(self, product_id: int) -> None:
        self.calls.append(("remove", product_id))
        self._maybe_fail()
        remaining = self.failing_deletes.get(product_id, 0)
        if remaining:
            if remaining > 0:
                self.failing_deletes[product_id] = remaining - 1
            raise NetworkError("Delete failed", status=500)
        self.lines.pop(product_id, None)

    async def fetch_cart(self, token: str) -> list[CartItem]:
        self.calls.append(("fetch",))
        self._maybe_fail()
        if self.fail_fetch:
            raise NetworkError("Fetch failed", status=503)
        return [self._line(pid, qty) for pid, qty in self.lines.items()]

    async def add_item(self, token: str, product_id: int, quantity: int) -> list[CartItem]:
        self._add(product_id, quantity)
        return await self.fetch_cart(token)

    async def remove_item(self, token: str, product_id: int) -> list[CartItem]:
        self._delete(product_id)
        return await self.fetch_cart(token)

    async def update_item(self, token: str, product_id: int, quantity: int) -> list[CartItem]:
        self.calls.append(("update", product_id, quantity))
        self._maybe_fail()
        self.lines[product_id] = quantity
        return await self.fetch_cart(token)

    async def add_items(self, token: str, lines: list[CartItem]) -> BatchOutcome:
        outcome = BatchOutcome()
        for line in lines:
            try:
                self._add(line.id, line.quantity)
            except NetworkError:
                outcome.failed.append(line.id)
            else:
                outcome.succeeded.append(line.id)
        return outcome

    async def remove_items(self, token: str, product_ids: list[int]) -> BatchOutcome:
        outcome = BatchOutcome()
        for product_id in product_ids:
            try:
                self._delete(product_id)
            except NetworkError:
                outcome.failed.append(product_id)
            else:
                outcome.succeeded.append(product_id)
        return outcome


@dataclass
class FakeOrders:
    payloads: list[dict] = field(default_factory=list)
    fail: bool = False
    pending: PendingOrderStatus = field(default_factory=lambda: PendingOrderStatus(pending=False))
    next_id: int = 1001
    confirmations: int = 0
    checkout_ids: list = field(default_factory=list)
    delay: float = 0

    async def create_order(self, token: str, payload: dict, *, checkout_id: str | None = None) -> str:
        self.payloads.append(payload)
        self.checkout_ids.append(checkout_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise NetworkError("Request failed with status 500", status=500)
        order_id = str(self.next_id)
        self.next_id += 1
        return order_id

    async def fetch_pending_order(self, token: str) -> PendingOrderStatus:
        return self.pending

    async def confirm_pay_on_delivery(self, token: str) -> PayOnDeliveryConfirmation:
        self.confirmations += 1
        if self.fail:
            raise NetworkError("Confirmation failed.", status=400)
        return PayOnDeliveryConfirmation(message="Payment confirmed!", order_id="1001")


@dataclass
class RecordingNotifier:
    successes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.successes.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def storage() -> KeyValueStore:
    return KeyValueStore(redis_url=None, namespace="test")


@pytest.fixture
def local_store(storage: KeyValueStore) -> LocalCartStore:
    return LocalCartStore(storage)


@pytest.fixture
def remote() -> FakeRemoteCart:
    return FakeRemoteCart()


@pytest.fixture
def orders() -> FakeOrders:
    return FakeOrders()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def router() -> RecordingRouter:
    return RecordingRouter()


@pytest.fixture
def reconciler(local_store, remote, notifier) -> CartReconciler:
    return CartReconciler(
        local_store,
        remote,
        PendingCheckoutStore(local_store),
        notifier,
        clear_retry_passes=1,
    )


@pytest.fixture
def checkout_config() -> CheckoutConfig:
    return CheckoutConfig(default_delivery_fee=3000, redirect_delay=0, post_order_path="/categories")


@pytest.fixture
def checkout(reconciler, orders, router, checkout_config, notifier) -> CheckoutStateMachine:
    return CheckoutStateMachine(reconciler, orders, router, checkout_config, notifier=notifier)


@pytest.fixture
def delivery_form() -> dict:
    return {
        "fullName": "  Amina Njeri ",
        "email": " amina@example.com ",
        "phone": " +254 712 345678 ",
        "coordinates": {"lat": -1.2921, "lng": 36.8219},
        "address": " 12 Moi Avenue ",
        "district": " Central ",
        "city": " Nairobi ",
        "postalCode": " 00100 ",
        "instructions": "   ",
    }
