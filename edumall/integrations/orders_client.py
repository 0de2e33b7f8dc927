"""Order creation and pay-on-delivery endpoints."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from edumall.core.exceptions import NetworkError
from edumall.core.idempotency import build_request_hash
from edumall.integrations.api_client import ApiClient

ORDERS_PATH = "/api/orders"
PENDING_ORDER_PATH = "/api/orders/pending"
CONFIRM_PAY_ON_DELIVERY_PATH = "/api/checkout/confirm-pay-on-delivery"


@dataclass(frozen=True, slots=True)
class PendingOrderStatus:
    pending: bool
    order_id: str | None = None


@dataclass(frozen=True, slots=True)
class PayOnDeliveryConfirmation:
    message: str
    order_id: str | None = None


def order_idempotency_key(payload: dict[str, Any], checkout_id: str | None = None) -> str:
    if not checkout_id:
        return build_request_hash(payload)
    return build_request_hash({"checkout_id": checkout_id, "order": payload})


class OrderClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def create_order(
        self,
        token: str,
        payload: dict[str, Any],
        *,
        checkout_id: str | None = None,
    ) -> str:
        """POST the order and return its id.

        The ``Idempotency-Key`` hashes the payload together with the checkout
        id: a retry within one checkout reuses the key, while the same order
        placed again in a later checkout gets a new one.
        """
        body = await self.api.post(
            ORDERS_PATH,
            token=token,
            json=payload,
            headers={"Idempotency-Key": order_idempotency_key(payload, checkout_id)},
            expect_json=True,
        )
        order_id = body.get("order_id") if isinstance(body, dict) else None
        if order_id is None or str(order_id).strip() == "":
            raise NetworkError("Server did not return an order id", path=ORDERS_PATH)
        return str(order_id)

    async def fetch_pending_order(self, token: str) -> PendingOrderStatus:
        body = await self.api.get(PENDING_ORDER_PATH, token=token, expect_json=True)
        if not isinstance(body, dict) or not body.get("pending"):
            return PendingOrderStatus(pending=False)
        order_id = body.get("order_id")
        return PendingOrderStatus(pending=True, order_id=str(order_id) if order_id else None)

    async def confirm_pay_on_delivery(self, token: str) -> PayOnDeliveryConfirmation:
        body = await self.api.post(CONFIRM_PAY_ON_DELIVERY_PATH, token=token, json={})
        body = body if isinstance(body, dict) else {}
        order = body.get("order") if isinstance(body.get("order"), dict) else {}
        order_id = order.get("id")
        return PayOnDeliveryConfirmation(
            message=str(body.get("message") or "Payment confirmed!"),
            order_id=str(order_id) if order_id is not None else None,
        )
