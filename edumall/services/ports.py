"""
Collaborator ports consumed by the cart and checkout services.

The embedding application supplies implementations for auth state,
user-visible notifications and navigation.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from logging_config import logger


@dataclass(frozen=True, slots=True)
class AuthState:
    token: str | None = None
    is_authenticated: bool = False

    @property
    def is_bound(self) -> bool:
        return bool(self.is_authenticated and self.token)


ANONYMOUS = AuthState()


@runtime_checkable
class Notifier(Protocol):
    """Toast sink for success and error messages."""

    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


@runtime_checkable
class Router(Protocol):
    """Navigation for guarded redirects."""

    def navigate(self, path: str) -> None:
        ...


class LoggingNotifier:
    """Notifier that only writes to the log; used when no UI is attached."""

    def success(self, message: str) -> None:
        logger.info("notify: %s", message)

    def error(self, message: str) -> None:
        logger.warning("notify: %s", message)


class RecordingRouter:
    """Router that remembers the requested paths."""

    def __init__(self) -> None:
        self.history: list[str] = []

    @property
    def current(self) -> str | None:
        return self.history[-1] if self.history else None

    def navigate(self, path: str) -> None:
        logger.info("navigate: %s", path)
        self.history.append(path)
