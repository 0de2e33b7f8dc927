"""Server-side cart operations; every write is followed by a full re-read."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from pydantic import ValidationError

from edumall.core.exceptions import NetworkError
from edumall.domain.cart import ApiCartResponse, CartItem, ProductId, aggregate_lines
from edumall.integrations.api_client import ApiClient
from logging_config import logger

CART_PATH = "/api/cart"
CART_ADD_PATH = "/api/cart/add"


@dataclass
class BatchOutcome:
    succeeded: list[ProductId] = field(default_factory=list)
    failed: list[ProductId] = field(default_factory=list)


def parse_cart_response(body: object) -> list[CartItem]:
    """Validate a ``GET /api/cart`` body and map it to cart lines.

    Raises:
        NetworkError: the body does not match the wire shape
    """
    try:
        response = ApiCartResponse.model_validate(body)
    except ValidationError as exc:
        logger.warning("Malformed cart response: %s", exc.error_count())
        raise NetworkError("Server returned an invalid cart", path=CART_PATH) from exc
    return aggregate_lines(line.to_cart_item() for line in response.cart)


class RemoteCartClient:
    """Authenticated access to the bound cart.

    Mutations never patch local state: each one returns the cart as re-read
    from the server right after the write.
    """

    def __init__(self, api: ApiClient):
        self.api = api

    async def fetch_cart(self, token: str) -> list[CartItem]:
        body = await self.api.get(CART_PATH, token=token, expect_json=True)
        return parse_cart_response(body)

    async def add_item(self, token: str, product_id: ProductId, quantity: int) -> list[CartItem]:
        await self._post_add(token, product_id, quantity)
        return await self.fetch_cart(token)

    async def remove_item(self, token: str, product_id: ProductId) -> list[CartItem]:
        await self._delete(token, product_id)
        return await self.fetch_cart(token)

    async def update_item(self, token: str, product_id: ProductId, quantity: int) -> list[CartItem]:
        await self.api.put(
            f"{CART_PATH}/{int(product_id)}",
            token=token,
            json={"quantity": int(quantity)},
        )
        return await self.fetch_cart(token)

    async def _post_add(self, token: str, product_id: ProductId, quantity: int) -> None:
        await self.api.post(
            CART_ADD_PATH,
            token=token,
            json={"product_id": int(product_id), "quantity": int(quantity)},
        )

    async def add_items(self, token: str, lines: list[CartItem]) -> BatchOutcome:
        """Add lines one after another without re-reading the cart.

        A failed line does not stop the remaining ones.
        """
        outcome = BatchOutcome()
        for line in lines:
            try:
                await self._post_add(token, line.id, line.quantity)
            except NetworkError as exc:
                logger.warning("Failed to add product %s: %s", line.id, exc.message)
                outcome.failed.append(line.id)
            else:
                outcome.succeeded.append(line.id)
        return outcome

    async def _delete(self, token: str, product_id: ProductId) -> None:
        await self.api.delete(f"{CART_PATH}/remove/{int(product_id)}", token=token)

    async def remove_items(self, token: str, product_ids: list[ProductId]) -> BatchOutcome:
        """Delete several lines concurrently without re-reading the cart."""
        results = await asyncio.gather(
            *(self._delete(token, product_id) for product_id in product_ids),
            return_exceptions=True,
        )
        outcome = BatchOutcome()
        for product_id, result in zip(product_ids, results):
            if isinstance(result, NetworkError):
                logger.warning("Failed to remove product %s: %s", product_id, result.message)
                outcome.failed.append(product_id)
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome.succeeded.append(product_id)
        return outcome
