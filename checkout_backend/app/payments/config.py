"""Payment platform configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
import logging
import os

logger = logging.getLogger(__name__)

PRODUCTION_API_BASE_URL = "https://api.creem.io/v1"
TEST_API_BASE_URL = "https://test-api.creem.io/v1"


@dataclass(frozen=True)
class PaymentsConfig:
    """Configuration shared by the checkout, verification and webhook flows."""

    api_key: str
    webhook_secret: str
    environment: str
    api_base_url: str
    public_base_url: Optional[str]
    app_scheme: str
    allow_unverified_success: bool
    verify_max_attempts: int
    verify_backoff_seconds: float
    request_timeout_seconds: float
    signature_header: str
    cors_allow_origins: Tuple[str, ...]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _to_origins(value: Optional[str]) -> Tuple[str, ...]:
    if value is None or not value.strip():
        return ("*",)
    return tuple(origin.strip() for origin in value.split(",") if origin.strip())


def load_payments_config(env: Optional[Mapping[str, str]] = None) -> PaymentsConfig:
    """Load :class:`PaymentsConfig` from environment variables.

    Missing credentials are not an error here. The platform client and the
    webhook ingestor refuse to operate without them at request time.
    """

    env_mapping = os.environ if env is None else env

    environment = (env_mapping.get("APP_ENV") or "test").strip().lower()
    if environment != "production":
        environment = "test"

    default_base = PRODUCTION_API_BASE_URL if environment == "production" else TEST_API_BASE_URL
    api_base_url = (env_mapping.get("CREEM_API_BASE_URL") or default_base).strip().rstrip("/")

    public_base_url = (env_mapping.get("PUBLIC_BASE_URL") or "").strip().rstrip("/") or None

    allow_unverified_success = _to_bool(env_mapping.get("ALLOW_UNVERIFIED_SUCCESS"), default=False)
    if allow_unverified_success and environment == "production":
        logger.warning("ALLOW_UNVERIFIED_SUCCESS is ignored in production")
        allow_unverified_success = False

    verify_max_attempts = max(1, _to_int(env_mapping.get("VERIFY_MAX_ATTEMPTS"), default=5))
    verify_backoff_seconds = max(0.0, _to_float(env_mapping.get("VERIFY_BACKOFF_SECONDS"), default=0.9))
    request_timeout_seconds = max(0.1, _to_float(env_mapping.get("CREEM_TIMEOUT_SECONDS"), default=20.0))

    signature_header = (env_mapping.get("WEBHOOK_SIGNATURE_HEADER") or "creem-signature").strip().lower()

    return PaymentsConfig(
        api_key=(env_mapping.get("CREEM_API_KEY") or "").strip(),
        webhook_secret=env_mapping.get("CREEM_WEBHOOK_SECRET") or "",
        environment=environment,
        api_base_url=api_base_url,
        public_base_url=public_base_url,
        app_scheme=(env_mapping.get("APP_SCHEME") or "creemapp").strip(),
        allow_unverified_success=allow_unverified_success,
        verify_max_attempts=verify_max_attempts,
        verify_backoff_seconds=verify_backoff_seconds,
        request_timeout_seconds=request_timeout_seconds,
        signature_header=signature_header,
        cors_allow_origins=_to_origins(env_mapping.get("CORS_ALLOW_ORIGINS")),
    )


__all__ = ["PaymentsConfig", "load_payments_config", "PRODUCTION_API_BASE_URL", "TEST_API_BASE_URL"]
