"""In-progress checkout data that must survive a login redirect."""
from __future__ import annotations

from typing import Any

from edumall.domain.checkout import PendingCheckoutDetails
from edumall.services.local_cart_store import LocalCartStore
from logging_config import logger


class PendingCheckoutStore:
    """Holds the handoff record in memory and mirrors it to local storage."""

    def __init__(self, local: LocalCartStore):
        self._local = local
        self._details: PendingCheckoutDetails | None = None

    @property
    def details(self) -> PendingCheckoutDetails | None:
        return self._details

    def load(self) -> PendingCheckoutDetails | None:
        self._details = self._local.load_pending_checkout()
        return self._details

    def save(self, details: PendingCheckoutDetails | dict[str, Any]) -> PendingCheckoutDetails:
        if isinstance(details, dict):
            details = PendingCheckoutDetails.from_dict(details)
        self._details = details
        self._local.save_pending_checkout(details)
        logger.info(
            "Saved pending checkout (%s lines, details=%s)",
            len(details.items or []),
            details.delivery_details is not None,
        )
        return details

    def clear(self) -> None:
        self._details = None
        self._local.clear_pending_checkout()

    def forget(self) -> None:
        """Drop the in-memory copy only; storage is handled by the caller."""
        self._details = None
