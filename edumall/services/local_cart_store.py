"""Fail-soft persistence of the guest cart and checkout handoff records."""
from __future__ import annotations

import json
from typing import Any, Callable, TypeVar

from edumall.core.exceptions import StorageParseError
from edumall.domain.cart import CartItem, aggregate_lines
from edumall.domain.checkout import PendingCheckoutDetails, PendingPayment
from edumall.integrations.redis_storage import KeyValueStore
from logging_config import logger

GUEST_CART_KEY = "guest_cart"
PENDING_CHECKOUT_KEY = "pendingCheckoutDetails"
PENDING_PAYMENT_KEY = "pendingPayment"

T = TypeVar("T")


class LocalCartStore:
    """Guest cart, pending checkout and pending payment under fixed keys.

    Reads never raise: a missing, unreadable or corrupted value is logged and
    treated as absent. The guest cart is mirrored in memory after each read or
    write.
    """

    def __init__(self, storage: KeyValueStore):
        self._storage = storage
        self._guest_items: list[CartItem] = []

    @property
    def guest_items(self) -> list[CartItem]:
        return list(self._guest_items)

    def _read_json(self, key: str) -> Any:
        try:
            raw = self._storage.get(key)
        except Exception as exc:
            raise StorageParseError(key, f"read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StorageParseError(key, str(exc)) from exc

    def _write_json(self, key: str, value: Any) -> None:
        try:
            self._storage.set(key, json.dumps(value, ensure_ascii=False))
        except Exception as exc:
            logger.warning("Failed to write %s: %s", key, exc)

    def _remove(self, key: str) -> None:
        try:
            self._storage.delete(key)
        except Exception as exc:
            logger.warning("Failed to remove %s: %s", key, exc)

    def _load(self, key: str, parse: Callable[[Any], T]) -> T | None:
        try:
            data = self._read_json(key)
            if data is None:
                return None
            return parse(data)
        except StorageParseError as exc:
            logger.warning("%s", exc.message)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("%s", StorageParseError(key, str(exc)).message)
        return None

    @staticmethod
    def _parse_guest_cart(data: Any) -> list[CartItem]:
        if not isinstance(data, list):
            raise ValueError("guest cart must be a list")
        return aggregate_lines(CartItem.from_dict(raw) for raw in data)

    def load_guest_cart(self) -> list[CartItem]:
        items = self._load(GUEST_CART_KEY, self._parse_guest_cart) or []
        self._guest_items = items
        return list(items)

    def save_guest_cart(self, items: list[CartItem]) -> None:
        self._guest_items = list(items)
        self._write_json(GUEST_CART_KEY, [item.to_dict() for item in items])

    def clear_guest_cart(self) -> None:
        self._guest_items = []
        self._remove(GUEST_CART_KEY)

    def has_guest_cart(self) -> bool:
        try:
            return self._storage.get(GUEST_CART_KEY) is not None
        except Exception as exc:
            logger.warning("Failed to read %s: %s", GUEST_CART_KEY, exc)
            return False

    def load_pending_checkout(self) -> PendingCheckoutDetails | None:
        return self._load(PENDING_CHECKOUT_KEY, PendingCheckoutDetails.from_dict)

    def save_pending_checkout(self, details: PendingCheckoutDetails) -> None:
        self._write_json(PENDING_CHECKOUT_KEY, details.to_dict())

    def clear_pending_checkout(self) -> None:
        self._remove(PENDING_CHECKOUT_KEY)

    def load_pending_payment(self) -> PendingPayment | None:
        return self._load(PENDING_PAYMENT_KEY, PendingPayment.from_dict)

    def save_pending_payment(self, payment: PendingPayment) -> None:
        self._write_json(PENDING_PAYMENT_KEY, payment.to_dict())

    def clear_pending_payment(self) -> None:
        self._remove(PENDING_PAYMENT_KEY)
