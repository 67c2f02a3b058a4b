"""API schemas for checkout endpoints."""
from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..payments import CheckoutDetails, CheckoutSession


class CheckoutSessionRequest(BaseModel):
    product_id: Optional[str] = Field(default=None, alias="productId")
    plan_name: Optional[str] = Field(default=None, alias="planName")
    customer_email: Optional[str] = Field(default=None, alias="customerEmail")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionResponse(BaseModel):
    checkout_url: str = Field(alias="checkoutUrl")
    checkout_id: str = Field(alias="checkoutId")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_session(cls, session: CheckoutSession) -> "CheckoutSessionResponse":
        return cls(checkout_url=session.checkout_url, checkout_id=session.checkout_id)


class ProductSummary(BaseModel):
    name: Optional[str] = None
    id: Optional[str] = None


class CheckoutVerificationResponse(BaseModel):
    id: Optional[str] = None
    status: str
    amount: Optional[Union[int, float]] = None
    currency: Optional[str] = None
    customer_id: Optional[str] = None
    product: ProductSummary
    verified: bool

    @classmethod
    def from_details(cls, details: CheckoutDetails, *, verified: bool) -> "CheckoutVerificationResponse":
        return cls(
            id=details.id,
            status=details.status.value,
            amount=details.amount,
            currency=details.currency,
            customer_id=details.customer_id,
            product=ProductSummary(name=details.product.name, id=details.product.id),
            verified=verified,
        )


class WebhookAckResponse(BaseModel):
    received: bool = True


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
