"""Shared helpers for order totals and delivery fees."""
from __future__ import annotations

from typing import Any, Iterable


def _line_value(line: Any, name: str) -> Any:
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)


def calc_items_total(items: Iterable[Any]) -> int:
    """Sum of ``price * quantity`` over cart lines or their dict form."""
    total = 0
    for line in items:
        try:
            price = int(_line_value(line, "price") or 0)
        except (TypeError, ValueError):
            price = 0
        try:
            quantity = int(_line_value(line, "quantity") or 0)
        except (TypeError, ValueError):
            quantity = 0
        total += price * quantity
    return total


def calc_delivery_fee(
    delivery_fee: int | float | None,
    *,
    default_fee: int = 0,
) -> int:
    """Fee carried by the delivery form, or the configured placeholder."""
    if delivery_fee is None:
        return max(0, int(default_fee))
    try:
        return max(0, int(delivery_fee))
    except (TypeError, ValueError):
        return max(0, int(default_fee))


def calc_total_price(items_total: int | float, delivery_fee: int | float) -> int:
    return int(items_total) + int(delivery_fee)
