"""Application wiring for the payments service."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from ..payments import (
    CheckoutDetails,
    CheckoutProduct,
    CheckoutStatus,
    CreemPlatformClient,
    LoggingWebhookHandlers,
    PaymentPlatformClient,
    PaymentsConfig,
    SessionBroker,
    UpstreamError,
    VerificationPoller,
    VerificationResult,
    WebhookDispatcher,
    WebhookHandlers,
    WebhookIngestor,
)


logger = logging.getLogger("payments")


@dataclass(frozen=True)
class CheckoutVerification:
    """Verification outcome as reported to the mobile client."""

    details: CheckoutDetails
    verified: bool


@dataclass
class PaymentsService:
    """Bundles the payment components configured for one application instance."""

    config: PaymentsConfig
    broker: SessionBroker
    poller: VerificationPoller
    ingestor: WebhookIngestor

    def verify_checkout(self, checkout_id: str) -> CheckoutVerification:
        result = self.poller.verify(checkout_id)
        if result.is_paid and result.details is not None:
            logger.info("Checkout %s verified after %s attempt(s)", checkout_id, result.attempts)
            return CheckoutVerification(details=result.details, verified=True)

        if self.config.allow_unverified_success:
            return self._unverified_success(result)

        if result.details is not None:
            return CheckoutVerification(details=result.details, verified=False)

        raise UpstreamError(
            "Checkout lookup failed",
            status_code=result.status_code or 502,
            detail=result.reason,
        )

    def _unverified_success(self, result: VerificationResult) -> CheckoutVerification:
        source_status = result.last_status.value if result.last_status else "verification_failed"
        logger.warning(
            "Reporting unverified success for checkout %s (outcome=%s status=%s); ALLOW_UNVERIFIED_SUCCESS is on",
            result.checkout_id,
            result.outcome.value,
            source_status,
        )
        product = result.details.product if result.details is not None else CheckoutProduct()
        details = CheckoutDetails(
            id=result.checkout_id,
            status=CheckoutStatus.COMPLETED,
            product=product,
        )
        return CheckoutVerification(details=details, verified=False)


def build_payments_service(
    config: PaymentsConfig,
    *,
    platform: Optional[PaymentPlatformClient] = None,
    handlers: Optional[WebhookHandlers] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PaymentsService:
    platform = platform or CreemPlatformClient(
        api_key=config.api_key,
        base_url=config.api_base_url,
        timeout=config.request_timeout_seconds,
    )
    dispatcher = WebhookDispatcher(handlers or LoggingWebhookHandlers())
    return PaymentsService(
        config=config,
        broker=SessionBroker(platform=platform),
        poller=VerificationPoller(
            platform=platform,
            max_attempts=config.verify_max_attempts,
            base_delay=config.verify_backoff_seconds,
            sleep=sleep,
        ),
        ingestor=WebhookIngestor(secret=config.webhook_secret, dispatcher=dispatcher),
    )


def get_payments_service(request: Request) -> PaymentsService:
    service = getattr(request.app.state, "payments_service", None)
    if service is None:
        raise RuntimeError("Payments service has not been configured on the application")
    return service


__all__ = [
    "CheckoutVerification",
    "PaymentsService",
    "build_payments_service",
    "get_payments_service",
]
