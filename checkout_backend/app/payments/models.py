"""Domain models for checkout sessions, verification and webhook events."""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CheckoutStatus(str, Enum):
    """Normalized checkout status reported by the payment platform."""

    PENDING = "pending"
    OPEN = "open"
    COMPLETED = "completed"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"
    CANCELED = "canceled"
    UNKNOWN = "unknown"

    @classmethod
    def normalize(cls, value: object) -> "CheckoutStatus":
        if not isinstance(value, str):
            return cls.UNKNOWN
        lowered = value.strip().lower()
        if lowered == "cancelled":
            lowered = "canceled"
        try:
            return cls(lowered)
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_successful(self) -> bool:
        """Return ``True`` for the only states that may grant an entitlement."""
        return self in {CheckoutStatus.PAID, CheckoutStatus.COMPLETED}

    @property
    def is_transient(self) -> bool:
        return self in {CheckoutStatus.PENDING, CheckoutStatus.OPEN}


class VerificationOutcome(str, Enum):
    """Terminal result of polling the platform for a checkout."""

    PAID = "paid"
    NOT_COMPLETED = "not_completed"
    FAILED = "failed"


class WebhookEventType(str, Enum):
    """Webhook event types that the application reacts to."""

    CHECKOUT_COMPLETED = "checkout.completed"
    SUBSCRIPTION_ACTIVE = "subscription.active"
    SUBSCRIPTION_PAID = "subscription.paid"
    SUBSCRIPTION_CANCELED = "subscription.canceled"
    SUBSCRIPTION_PAST_DUE = "subscription.past_due"
    REFUND_CREATED = "refund.created"


class CheckoutSession(BaseModel):
    """Client-usable result of a checkout session creation request."""

    checkout_id: str
    checkout_url: str
    product_id: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CheckoutProduct(BaseModel):
    name: Optional[str] = None
    id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CheckoutDetails(BaseModel):
    """Whitelisted projection of a platform checkout record."""

    id: Optional[str] = None
    status: CheckoutStatus = CheckoutStatus.UNKNOWN
    amount: Optional[Union[int, float]] = None
    currency: Optional[str] = None
    customer_id: Optional[str] = None
    product: CheckoutProduct = Field(default_factory=CheckoutProduct)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_platform(cls, payload: Mapping[str, Any]) -> "CheckoutDetails":
        """Pick the fields a client may see out of a raw platform checkout."""

        order = payload.get("order") if isinstance(payload.get("order"), dict) else {}

        product = payload.get("product")
        if isinstance(product, dict):
            product_name = _optional_str(product.get("name"))
            product_id = _optional_str(product.get("id"))
        else:
            product_name = None
            product_id = _optional_str(product)

        customer_id = _optional_str(payload.get("customer_id"))
        if customer_id is None:
            customer = payload.get("customer")
            if isinstance(customer, dict):
                customer_id = _optional_str(customer.get("id"))
            else:
                customer_id = _optional_str(customer)

        amount = _first_present(payload.get("amount"), order.get("amount"))
        currency = _first_present(payload.get("currency"), order.get("currency"))

        return cls(
            id=_optional_str(payload.get("id")),
            status=CheckoutStatus.normalize(payload.get("status")),
            amount=_optional_number(amount),
            currency=_optional_str(currency),
            customer_id=customer_id,
            product=CheckoutProduct(name=product_name, id=product_id),
        )


class VerificationResult(BaseModel):
    """Outcome of a verification poll for one checkout identifier."""

    outcome: VerificationOutcome
    checkout_id: str
    attempts: int = Field(ge=0)
    details: Optional[CheckoutDetails] = None
    last_status: Optional[CheckoutStatus] = None
    status_code: Optional[int] = None
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_paid(self) -> bool:
        return self.outcome == VerificationOutcome.PAID


class WebhookEvent(BaseModel):
    """Decoded webhook envelope as delivered by the platform."""

    event_id: Optional[str] = Field(default=None, alias="id")
    event_type: str = Field(alias="eventType", min_length=1)
    object: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def kind(self) -> Optional[WebhookEventType]:
        """Known event type, or ``None`` for types this service does not handle."""
        try:
            return WebhookEventType(self.event_type)
        except ValueError:
            return None


class WebhookAck(BaseModel):
    received: bool = True


def _optional_str(value: object) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value)
    return text or None


def _first_present(primary: object, fallback: object) -> object:
    return primary if primary is not None else fallback


def _optional_number(value: object) -> Optional[Union[int, float]]:
    """Platform amount as reported, or ``None`` when it is not a number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
    else:
        return None
    if isinstance(number, float) and not math.isfinite(number):
        return None
    return number


__all__ = [
    "CheckoutDetails",
    "CheckoutProduct",
    "CheckoutSession",
    "CheckoutStatus",
    "VerificationOutcome",
    "VerificationResult",
    "WebhookAck",
    "WebhookEvent",
    "WebhookEventType",
]
