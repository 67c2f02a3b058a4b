"""API routes exposing checkout, verification and webhook endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from ..payments import build_cancel_deep_link, build_success_deep_link, resolve_public_base_url
from ..schemas.payments import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    CheckoutVerificationResponse,
    ErrorResponse,
    WebhookAckResponse,
)
from ..services.payments import PaymentsService, get_payments_service


_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
}

router = APIRouter(tags=["payments"])


@router.post("/checkout", response_model=CheckoutSessionResponse, responses=_ERROR_RESPONSES)
def create_checkout_session(
    payload: CheckoutSessionRequest,
    request: Request,
    service: PaymentsService = Depends(get_payments_service),
) -> CheckoutSessionResponse:
    callback_base = resolve_public_base_url(
        service.config.public_base_url,
        request.headers,
        request.url.scheme,
    )
    session = service.broker.create_session(
        payload.product_id,
        callback_base,
        plan_name=payload.plan_name,
        customer_email=payload.customer_email,
    )
    return CheckoutSessionResponse.from_session(session)


@router.get(
    "/verify-checkout/{checkout_id}",
    response_model=CheckoutVerificationResponse,
    responses=_ERROR_RESPONSES,
)
def verify_checkout(
    checkout_id: str,
    service: PaymentsService = Depends(get_payments_service),
) -> CheckoutVerificationResponse:
    verification = service.verify_checkout(checkout_id)
    return CheckoutVerificationResponse.from_details(verification.details, verified=verification.verified)


@router.get("/payment-success", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
def payment_success(
    checkout_id: Optional[str] = Query(default=None),
    service: PaymentsService = Depends(get_payments_service),
) -> RedirectResponse:
    deep_link = build_success_deep_link(service.config.app_scheme, checkout_id)
    return RedirectResponse(deep_link, status_code=status.HTTP_302_FOUND)


@router.get("/payment-cancelled", response_class=RedirectResponse, status_code=status.HTTP_302_FOUND)
def payment_cancelled(service: PaymentsService = Depends(get_payments_service)) -> RedirectResponse:
    return RedirectResponse(build_cancel_deep_link(service.config.app_scheme), status_code=status.HTTP_302_FOUND)


@router.post(
    "/webhook",
    response_model=WebhookAckResponse,
    responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: PaymentsService = Depends(get_payments_service),
) -> WebhookAckResponse:
    raw_body = await request.body()
    signature = request.headers.get(service.config.signature_header)
    ack = service.ingestor.handle(raw_body, signature, background_tasks=background_tasks)
    return WebhookAckResponse(received=ack.received)
