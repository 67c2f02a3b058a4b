"""Checkout session creation and server-side payment verification."""
from __future__ import annotations

import logging
import re
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Mapping, Optional

from .errors import ConfigurationError, UpstreamError, ValidationError
from .models import (
    CheckoutDetails,
    CheckoutSession,
    CheckoutStatus,
    VerificationOutcome,
    VerificationResult,
)
from .provider import PaymentPlatformClient

logger = logging.getLogger("payments")

# Substituted by the platform when it redirects the buyer back to us.
CHECKOUT_ID_PLACEHOLDER = "{CHECKOUT_ID}"

RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({404, 409, 425, 429})

_PLACEHOLDER_PATTERN = re.compile(r"^\{.+\}$")

_dataclass_kwargs = {"slots": True} if sys.version_info >= (3, 10) else {}


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


def is_placeholder_checkout_id(value: Optional[str]) -> bool:
    """Return ``True`` when ``value`` is an unresolved callback template token."""
    if not value:
        return True
    return "CHECKOUT_ID" in value or bool(_PLACEHOLDER_PATTERN.match(value))


def resolve_public_base_url(
    configured: Optional[str],
    headers: Mapping[str, str],
    scheme: str,
) -> str:
    """Determine the externally reachable base URL used for platform callbacks."""

    if configured and configured.strip():
        return configured.strip().rstrip("/")

    host = _first_value(headers.get("x-forwarded-host")) or _first_value(headers.get("host"))
    if not host:
        raise ConfigurationError(
            "Cannot determine public base URL",
            detail="Set PUBLIC_BASE_URL or forward the Host header",
        )
    proto = _first_value(headers.get("x-forwarded-proto")) or scheme or "http"
    return f"{proto}://{host}"


def _first_value(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


@dataclass(**_dataclass_kwargs)
class SessionBroker:
    """Creates hosted checkout sessions on behalf of the mobile client."""

    platform: PaymentPlatformClient

    def create_session(
        self,
        product_id: Optional[str],
        callback_base: str,
        *,
        plan_name: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        product_id = (product_id or "").strip()
        if not product_id:
            raise ValidationError("productId is required")

        success_url = f"{callback_base.rstrip('/')}/payment-success?checkout_id={CHECKOUT_ID_PLACEHOLDER}"
        metadata: Dict[str, str] = {}
        if plan_name:
            metadata["plan_name"] = plan_name

        # Session creation is not idempotent; a retry could open a second session.
        response = self.platform.create_checkout(
            product_id=product_id,
            success_url=success_url,
            metadata=metadata or None,
            customer_email=customer_email or None,
        )
        if not response.ok:
            logger.error(
                "Checkout creation failed product=%s status=%s body=%s",
                product_id,
                response.status_code,
                response.text,
            )
            raise UpstreamError(
                "Creem API error",
                status_code=response.status_code,
                detail=response.text,
            )

        payload = response.json()
        checkout_url = payload.get("checkout_url")
        checkout_id = payload.get("id")
        if not checkout_url or not checkout_id:
            raise UpstreamError(
                "Creem API error",
                detail="checkout response is missing checkout_url or id",
            )

        logger.info("Created checkout %s for product %s", checkout_id, product_id)
        return CheckoutSession(
            checkout_id=str(checkout_id),
            checkout_url=str(checkout_url),
            product_id=product_id,
        )


@dataclass(**_dataclass_kwargs)
class VerificationPoller:
    """Polls the platform until a checkout reaches a terminal state.

    Retryable upstream failures and transient statuses are retried with a
    linear backoff of ``attempt * base_delay`` seconds. At most
    ``max_attempts`` platform calls are made per verification.
    """

    platform: PaymentPlatformClient
    max_attempts: int = 5
    base_delay: float = 0.9
    sleep: Callable[[float], None] = field(default=time.sleep)

    def verify(self, checkout_id: str) -> VerificationResult:
        if is_placeholder_checkout_id(checkout_id):
            raise ValidationError("checkoutId is not a resolved checkout identifier")

        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            response = self.platform.get_checkout(checkout_id)
            has_next = attempt < attempts

            if not response.ok:
                if is_retryable_status(response.status_code) and has_next:
                    logger.info(
                        "Checkout %s lookup returned %s, retrying (attempt %s/%s)",
                        checkout_id,
                        response.status_code,
                        attempt,
                        attempts,
                    )
                    self._backoff(attempt)
                    continue
                logger.warning(
                    "Checkout %s lookup failed status=%s body=%s",
                    checkout_id,
                    response.status_code,
                    response.text,
                )
                return VerificationResult(
                    outcome=VerificationOutcome.FAILED,
                    checkout_id=checkout_id,
                    attempts=attempt,
                    status_code=response.status_code,
                    reason=response.text,
                )

            details = CheckoutDetails.from_platform(response.json())
            if details.status.is_successful:
                return VerificationResult(
                    outcome=VerificationOutcome.PAID,
                    checkout_id=checkout_id,
                    attempts=attempt,
                    details=details,
                    last_status=details.status,
                    status_code=response.status_code,
                )

            if details.status.is_transient and has_next:
                self._backoff(attempt)
                continue

            return VerificationResult(
                outcome=VerificationOutcome.NOT_COMPLETED,
                checkout_id=checkout_id,
                attempts=attempt,
                details=details,
                last_status=details.status,
                status_code=response.status_code,
                reason=f"Checkout not completed (status: {details.status.value})",
            )

        raise RuntimeError("verification loop ended without a result")  # pragma: no cover

    def _backoff(self, attempt: int) -> None:
        self.sleep(attempt * self.base_delay)


__all__ = [
    "CHECKOUT_ID_PLACEHOLDER",
    "RETRYABLE_STATUS_CODES",
    "SessionBroker",
    "VerificationPoller",
    "is_placeholder_checkout_id",
    "is_retryable_status",
    "resolve_public_base_url",
]
