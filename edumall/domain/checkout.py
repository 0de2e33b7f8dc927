"""
Checkout value types: delivery details, payment outcome, handoff records.

Delivery details are validated with pydantic at the form boundary. String
fields are trimmed; blank optional fields collapse to ``None``. Stored records
use the camelCase keys the storefront front end writes.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from edumall.core.exceptions import ValidationException
from edumall.core.order_math import calc_items_total, calc_total_price
from edumall.domain.cart import CartItem

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_ALLOWED_RE = re.compile(r"^[0-9+\-\s()]+$")

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PENDING = "pending"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DeliveryDetails(BaseModel):
    """Where and to whom an order is delivered."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    full_name: str = Field(alias="fullName", min_length=1)
    email: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    coordinates: Coordinates
    address: str = Field(min_length=1)
    district: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postal_code: str | None = Field(default=None, alias="postalCode")
    instructions: str | None = None
    delivery_fee: int | None = Field(default=None, alias="deliveryFee", ge=0)
    distance_km: float | None = Field(default=None, alias="distanceKm", ge=0)

    @field_validator("postal_code", "instructions", mode="before")
    @classmethod
    def _optional_blank(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not _EMAIL_RE.match(value):
            raise ValueError("invalid email address")
        return value

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        digits = sum(ch.isdigit() for ch in value)
        if not _PHONE_ALLOWED_RE.match(value) or digits < 7:
            raise ValueError("invalid phone number")
        return value

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_delivery_details(raw: DeliveryDetails | dict[str, Any]) -> DeliveryDetails:
    """Validate and trim raw form data.

    Raises:
        ValidationException: listing the offending fields
    """
    if isinstance(raw, DeliveryDetails):
        raw = raw.to_dict()
    if not isinstance(raw, dict):
        raise ValidationException("Delivery details must be an object")
    try:
        return DeliveryDetails.model_validate(raw)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise ValidationException(
            f"Please check the delivery details: {', '.join(fields)}", fields
        ) from exc


@dataclass
class PaymentDetails:
    """Outcome reported by the payment widget."""

    method: str
    status: str
    amount: int
    transaction_id: str | None = None
    timestamp: str | None = None

    @property
    def is_settled(self) -> bool:
        return self.status == "success"

    @property
    def payment_status(self) -> str:
        return PAYMENT_STATUS_PAID if self.is_settled else PAYMENT_STATUS_PENDING

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentDetails:
        return cls(
            method=str(data.get("method", "")),
            status=str(data.get("status", "")),
            amount=int(data.get("amount") or 0),
            transaction_id=data.get("transactionId"),
            timestamp=data.get("timestamp"),
        )


@dataclass
class PendingPayment:
    """Order placed without a settled payment (pay on delivery)."""

    order_id: str
    method: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"orderId": self.order_id, "method": self.method, "amount": int(self.amount)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingPayment:
        return cls(
            order_id=str(data["orderId"]),
            method=str(data.get("method", "")),
            amount=int(data.get("amount") or 0),
        )


@dataclass
class PendingCheckoutDetails:
    """In-progress checkout carried across a login redirect."""

    delivery_details: DeliveryDetails | None = None
    items: list[CartItem] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.delivery_details is not None:
            data["deliveryDetails"] = self.delivery_details.to_dict()
        if self.items is not None:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PendingCheckoutDetails:
        """Raises ``ValueError`` (or pydantic's subclass) on unusable data."""
        if not isinstance(data, dict):
            raise ValueError("pending checkout must be an object")
        raw_details = data.get("deliveryDetails")
        raw_items = data.get("items")
        if raw_items is not None and not isinstance(raw_items, list):
            raise ValueError("pending checkout items must be a list")
        return cls(
            delivery_details=(
                DeliveryDetails.model_validate(raw_details) if raw_details is not None else None
            ),
            items=[CartItem.from_dict(raw) for raw in raw_items] if raw_items is not None else None,
        )


def build_order_payload(
    items: list[CartItem],
    details: DeliveryDetails,
    payment: PaymentDetails,
    delivery_fee: int,
) -> dict[str, Any]:
    """Order body for ``POST /api/orders``."""
    subtotal = calc_items_total(items)
    return {
        "customer": {
            "name": details.full_name,
            "email": details.email,
            "phone": details.phone,
        },
        "address": [
            {
                "street": details.address,
                "city": details.city,
                "district": details.district,
                "postal_code": details.postal_code,
                "coordinates": {
                    "lat": details.coordinates.lat,
                    "lng": details.coordinates.lng,
                },
                "instructions": details.instructions,
            }
        ],
        "items": [
            {"product_id": item.id, "quantity": item.quantity, "price": item.price}
            for item in items
        ],
        "subtotal": subtotal,
        "delivery_fee": int(delivery_fee),
        "total": calc_total_price(subtotal, delivery_fee),
        "payment_method": payment.method,
        "payment_status": payment.payment_status,
    }
