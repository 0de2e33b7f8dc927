"""Environment-driven configuration objects for the storefront engine."""
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from edumall.core.exceptions import ConfigurationException

DEFAULT_API_URL = "http://127.0.0.1:8000"


def _str_to_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"true", "1", "yes", "y"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationException(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(slots=True)
class ApiConfig:
    base_url: str
    timeout: float


@dataclass(slots=True)
class CheckoutConfig:
    default_delivery_fee: int
    redirect_delay: float
    post_order_path: str


@dataclass(slots=True)
class Settings:
    api: ApiConfig
    checkout: CheckoutConfig
    redis_url: str | None
    storage_namespace: str
    clear_retry_passes: int
    debug: bool = False


def load_settings() -> Settings:
    """Load environment variables once and expose typed settings."""
    load_dotenv()

    base_url = (os.getenv("EDUMALL_API_URL") or DEFAULT_API_URL).strip().rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigurationException(f"EDUMALL_API_URL must be an http(s) URL, got {base_url!r}")

    retry_passes = _env_int("EDUMALL_CLEAR_RETRY_PASSES", 1)
    if retry_passes < 0:
        raise ConfigurationException("EDUMALL_CLEAR_RETRY_PASSES cannot be negative")

    delivery_fee = _env_int("EDUMALL_DEFAULT_DELIVERY_FEE", 0)
    if delivery_fee < 0:
        raise ConfigurationException("EDUMALL_DEFAULT_DELIVERY_FEE cannot be negative")

    api = ApiConfig(
        base_url=base_url,
        timeout=_env_float("EDUMALL_HTTP_TIMEOUT", 15.0),
    )
    checkout = CheckoutConfig(
        default_delivery_fee=delivery_fee,
        redirect_delay=max(_env_float("EDUMALL_REDIRECT_DELAY", 1.5), 0.0),
        post_order_path=os.getenv("EDUMALL_POST_ORDER_PATH", "/categories"),
    )

    return Settings(
        api=api,
        checkout=checkout,
        redis_url=os.getenv("REDIS_URL") or None,
        storage_namespace=os.getenv("EDUMALL_STORAGE_NAMESPACE", "edumall"),
        clear_retry_passes=retry_passes,
        debug=_str_to_bool(os.getenv("EDUMALL_DEBUG")),
    )
