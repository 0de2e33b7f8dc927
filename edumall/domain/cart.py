"""Cart line items, wire mapping and line aggregation rules."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field

ProductId = int


@dataclass
class CartItem:
    """Single line in a cart; one line per product id."""

    id: ProductId
    name: str
    price: int
    quantity: int
    image: str = ""
    category: str | None = None
    unit: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": int(self.id),
            "name": self.name,
            "price": int(self.price),
            "quantity": int(self.quantity),
            "image": self.image,
        }
        if self.category is not None:
            data["category"] = self.category
        if self.unit is not None:
            data["unit"] = self.unit
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartItem:
        """Build from a stored dict. Raises ``ValueError`` on unusable data."""
        if not isinstance(data, dict):
            raise ValueError(f"cart line must be an object, got {type(data).__name__}")
        price = int(data["price"])
        quantity = int(data["quantity"])
        if price < 0:
            raise ValueError(f"negative price for product {data.get('id')}")
        if quantity < 1:
            raise ValueError(f"quantity below 1 for product {data.get('id')}")
        category = data.get("category")
        unit = data.get("unit")
        return cls(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            price=price,
            quantity=quantity,
            image=str(data.get("image") or ""),
            category=str(category) if category is not None else None,
            unit=str(unit) if unit is not None else None,
        )


class ApiCartItem(BaseModel):
    """Cart line as returned by ``GET /api/cart``."""

    model_config = ConfigDict(extra="ignore")

    product_id: int
    name: str
    price: int = Field(ge=0)
    quantity: int = Field(ge=1)
    avatar: str | None = None
    category: str | None = None
    unit: str | None = None

    def to_cart_item(self) -> CartItem:
        return CartItem(
            id=self.product_id,
            name=self.name,
            price=self.price,
            quantity=self.quantity,
            image=self.avatar or "",
            category=self.category,
            unit=self.unit,
        )


class ApiCartResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cart: list[ApiCartItem] = Field(default_factory=list)


def add_line(items: list[CartItem], item: CartItem, quantity: int) -> list[CartItem]:
    """Return a new list with ``quantity`` of ``item`` added.

    An existing line for the same id has its quantity increased; otherwise the
    item is appended as a new line.
    """
    result: list[CartItem] = []
    merged = False
    for line in items:
        if line.id == item.id and not merged:
            result.append(replace(line, quantity=line.quantity + quantity))
            merged = True
        else:
            result.append(line)
    if not merged:
        result.append(replace(item, quantity=quantity))
    return result


def remove_line(items: list[CartItem], product_id: ProductId) -> list[CartItem]:
    return [line for line in items if line.id != product_id]


def set_line_quantity(
    items: list[CartItem], product_id: ProductId, quantity: int
) -> list[CartItem]:
    if quantity <= 0:
        return remove_line(items, product_id)
    return [
        replace(line, quantity=quantity) if line.id == product_id else line
        for line in items
    ]


def aggregate_lines(items: Iterable[CartItem]) -> list[CartItem]:
    """Collapse duplicate product ids into a single line, keeping first-seen order."""
    result: list[CartItem] = []
    for line in items:
        result = add_line(result, line, line.quantity)
    return result


def find_line(items: list[CartItem], product_id: ProductId) -> CartItem | None:
    for line in items:
        if line.id == product_id:
            return line
    return None


def cart_total(items: Iterable[CartItem]) -> int:
    return sum(int(line.price) * int(line.quantity) for line in items)


def cart_count(items: Iterable[CartItem]) -> int:
    # Distinct lines, not the sum of quantities.
    return len({line.id for line in items})
