"""
Idempotency helpers.

Stable request hashes for order creation and a one-shot guard for actions
that must run at most once per key (guest cart merge after login).
"""
from __future__ import annotations

import hashlib
import json
from typing import Any


def normalize_idempotency_key(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def build_request_hash(payload: dict[str, Any]) -> str:
    """Generate a stable hash for a request payload."""
    serialized = json.dumps(
        payload,
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


class OneShotGuard:
    """Remembers keys that were claimed; each key can be claimed once.

    A claim can be released when the guarded action failed and should be
    allowed to run again.
    """

    def __init__(self) -> None:
        self._claimed: set[str] = set()

    def claim(self, key: str | None) -> bool:
        key = normalize_idempotency_key(key)
        if key is None:
            return False
        if key in self._claimed:
            return False
        self._claimed.add(key)
        return True

    def release(self, key: str | None) -> None:
        key = normalize_idempotency_key(key)
        if key is not None:
            self._claimed.discard(key)

    def is_claimed(self, key: str | None) -> bool:
        key = normalize_idempotency_key(key)
        return key is not None and key in self._claimed
