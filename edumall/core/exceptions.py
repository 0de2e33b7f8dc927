"""Custom exceptions for the Edumall cart and checkout engine."""
from __future__ import annotations


class EdumallException(Exception):
    """Base exception for all storefront engine errors."""

    def __init__(self, message: str, *args: object) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigurationException(EdumallException):
    """Configuration errors."""

    pass


class StorageParseError(EdumallException):
    """Corrupted or unreadable local storage payload.

    Raised inside the local store only; callers always receive an empty value.
    """

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value under '{key}' is unreadable: {reason}")
        self.key = key
        self.reason = reason


class NetworkError(EdumallException):
    """A REST call failed or returned an unusable body."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.path = path


class AuthenticationRequired(NetworkError):
    """The server rejected the bearer token or no token was available."""

    pass


class PartialClearFailure(EdumallException):
    """Some remote deletions failed while clearing the cart."""

    def __init__(self, failed_ids: list[int]) -> None:
        super().__init__(f"Failed to remove {len(failed_ids)} cart line(s): {failed_ids}")
        self.failed_ids = failed_ids


class ValidationException(EdumallException):
    """Input validation errors."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class OrderCreationError(EdumallException):
    """Order POST failed; nothing was created and the cart is intact."""

    pass


class CheckoutTransitionError(EdumallException):
    """Checkout step change not allowed from the current step."""

    def __init__(self, current: str | None, target: str, reason: str) -> None:
        super().__init__(reason)
        self.current = current
        self.target = target
