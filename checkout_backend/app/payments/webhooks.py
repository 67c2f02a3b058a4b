"""Authentication, decoding and dispatch of platform webhook deliveries."""
from __future__ import annotations

import json
import logging
from typing import Callable, Dict, Optional, Protocol

from fastapi import BackgroundTasks
from pydantic import ValidationError as PydanticValidationError

from .errors import AuthenticationError, ConfigurationError
from .models import WebhookAck, WebhookEvent, WebhookEventType
from .signatures import verify_signature

logger = logging.getLogger(__name__)


class WebhookHandlers(Protocol):
    """Side effects triggered by authenticated platform events."""

    def on_checkout_completed(self, event: WebhookEvent) -> None:
        ...

    def on_subscription_active(self, event: WebhookEvent) -> None:
        ...

    def on_subscription_paid(self, event: WebhookEvent) -> None:
        ...

    def on_subscription_canceled(self, event: WebhookEvent) -> None:
        ...

    def on_subscription_past_due(self, event: WebhookEvent) -> None:
        ...

    def on_refund_created(self, event: WebhookEvent) -> None:
        ...


class WebhookDispatcher:
    """Routes each event to exactly one handler and contains handler failures."""

    def __init__(self, handlers: WebhookHandlers) -> None:
        self.handlers = handlers
        self._routes: Dict[WebhookEventType, Callable[[WebhookEvent], None]] = {
            WebhookEventType.CHECKOUT_COMPLETED: handlers.on_checkout_completed,
            WebhookEventType.SUBSCRIPTION_ACTIVE: handlers.on_subscription_active,
            WebhookEventType.SUBSCRIPTION_PAID: handlers.on_subscription_paid,
            WebhookEventType.SUBSCRIPTION_CANCELED: handlers.on_subscription_canceled,
            WebhookEventType.SUBSCRIPTION_PAST_DUE: handlers.on_subscription_past_due,
            WebhookEventType.REFUND_CREATED: handlers.on_refund_created,
        }

    def dispatch(self, event: WebhookEvent) -> None:
        kind = event.kind
        if kind is None:
            logger.info("Unhandled webhook event type %s id=%s", event.event_type, event.event_id)
            return

        handler = self._routes[kind]
        try:
            handler(event)
        except Exception:
            logger.exception("Webhook handler for %s failed id=%s", kind.value, event.event_id)


class WebhookIngestor:
    """Accepts signed webhook deliveries and hands them to the dispatcher.

    The signature is checked on the raw request bytes before anything is
    parsed. Once a delivery is authenticated it is always acknowledged;
    dispatch happens after the response when ``background_tasks`` is given.
    """

    def __init__(self, *, secret: str, dispatcher: WebhookDispatcher) -> None:
        self._secret = secret
        self.dispatcher = dispatcher

    def handle(
        self,
        raw_body: bytes,
        signature: Optional[str],
        *,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> WebhookAck:
        event = self.authenticate(raw_body, signature)
        if event is None:
            return WebhookAck()

        logger.info("Webhook %s received id=%s", event.event_type, event.event_id)
        if background_tasks is not None:
            background_tasks.add_task(self.dispatcher.dispatch, event)
        else:
            self.dispatcher.dispatch(event)
        return WebhookAck()

    def authenticate(self, raw_body: bytes, signature: Optional[str]) -> Optional[WebhookEvent]:
        """Verify and decode a delivery, returning ``None`` for undecodable bodies."""

        if not self._secret:
            raise ConfigurationError("Webhook secret is not configured")

        if not verify_signature(raw_body, self._secret, signature):
            logger.warning("Webhook signature mismatch, rejecting request")
            raise AuthenticationError("Invalid signature")

        try:
            envelope = json.loads(raw_body)
            return WebhookEvent.model_validate(envelope)
        except (ValueError, PydanticValidationError):
            logger.error("Authenticated webhook body could not be decoded", exc_info=True)
            return None


class LoggingWebhookHandlers:
    """Placeholder handlers that record events until provisioning hooks exist.

    Each handler only logs, so redelivery of the same event is harmless.
    """

    _logger = logging.getLogger("payments.webhooks")

    def on_checkout_completed(self, event: WebhookEvent) -> None:
        checkout = event.object
        self._logger.info(
            "Checkout completed %s customer=%s amount=%s %s, provisioning access",
            checkout.get("id"),
            checkout.get("customer_id") or _nested_id(checkout.get("customer")),
            checkout.get("amount"),
            checkout.get("currency"),
        )

    def on_subscription_active(self, event: WebhookEvent) -> None:
        subscription = event.object
        self._logger.info(
            "Subscription active %s product=%s, activating features",
            subscription.get("id"),
            subscription.get("product_id") or _nested_id(subscription.get("product")),
        )

    def on_subscription_paid(self, event: WebhookEvent) -> None:
        self._logger.info("Subscription renewed %s, extending access", event.object.get("id"))

    def on_subscription_canceled(self, event: WebhookEvent) -> None:
        self._logger.info("Subscription canceled %s, revoking access at period end", event.object.get("id"))

    def on_subscription_past_due(self, event: WebhookEvent) -> None:
        self._logger.warning("Subscription past due %s, flagging for dunning", event.object.get("id"))

    def on_refund_created(self, event: WebhookEvent) -> None:
        self._logger.warning("Refund issued %s, revoking access if fully refunded", event.object.get("id"))


def _nested_id(value: object) -> Optional[str]:
    if isinstance(value, dict):
        nested = value.get("id")
        return str(nested) if nested is not None else None
    return None if value is None else str(value)


__all__ = [
    "LoggingWebhookHandlers",
    "WebhookDispatcher",
    "WebhookHandlers",
    "WebhookIngestor",
]
