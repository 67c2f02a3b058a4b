"""Payments domain package: checkout sessions, verification and webhooks."""

from .config import PaymentsConfig, load_payments_config
from .errors import (
    AuthenticationError,
    CheckoutError,
    ConfigurationError,
    InternalError,
    UpstreamError,
    ValidationError,
)
from .models import (
    CheckoutDetails,
    CheckoutProduct,
    CheckoutSession,
    CheckoutStatus,
    VerificationOutcome,
    VerificationResult,
    WebhookAck,
    WebhookEvent,
    WebhookEventType,
)
from .provider import CreemPlatformClient, PaymentPlatformClient, PlatformResponse
from .redirects import build_cancel_deep_link, build_success_deep_link
from .service import (
    SessionBroker,
    VerificationPoller,
    is_placeholder_checkout_id,
    resolve_public_base_url,
)
from .signatures import compute_signature, verify_signature
from .webhooks import LoggingWebhookHandlers, WebhookDispatcher, WebhookHandlers, WebhookIngestor

__all__ = [
    "AuthenticationError",
    "CheckoutDetails",
    "CheckoutError",
    "CheckoutProduct",
    "CheckoutSession",
    "CheckoutStatus",
    "ConfigurationError",
    "CreemPlatformClient",
    "InternalError",
    "LoggingWebhookHandlers",
    "PaymentPlatformClient",
    "PaymentsConfig",
    "PlatformResponse",
    "SessionBroker",
    "UpstreamError",
    "ValidationError",
    "VerificationOutcome",
    "VerificationPoller",
    "VerificationResult",
    "WebhookAck",
    "WebhookDispatcher",
    "WebhookEvent",
    "WebhookEventType",
    "WebhookHandlers",
    "WebhookIngestor",
    "build_cancel_deep_link",
    "build_success_deep_link",
    "compute_signature",
    "is_placeholder_checkout_id",
    "load_payments_config",
    "resolve_public_base_url",
    "verify_signature",
]
