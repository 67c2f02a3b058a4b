import logging
import time
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from checkout_backend.app.payments import (
    CheckoutError,
    InternalError,
    PaymentPlatformClient,
    PaymentsConfig,
    WebhookHandlers,
    load_payments_config,
)
from checkout_backend.app.routes.payments import router as payments_router
from checkout_backend.app.services.payments import build_payments_service
from checkout_backend.middleware_perf import RequestTimingMiddleware


load_dotenv()

logger = logging.getLogger("checkout_backend")

ENDPOINTS = (
    ("POST", "/checkout", "create checkout session"),
    ("GET", "/verify-checkout/{checkout_id}", "verify payment status"),
    ("GET", "/payment-success", "redirect into the app after payment"),
    ("GET", "/payment-cancelled", "redirect into the app after cancel"),
    ("POST", "/webhook", "receive platform webhook events"),
)


async def handle_checkout_error(request: Request, exc: CheckoutError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


async def handle_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Rejected input may carry customer data; keep only where and why it failed.
    problems = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}:{error.get('type', 'invalid')}"
        for error in exc.errors()
    ]
    logger.info("Rejected malformed request to %s: %s", request.url.path, ", ".join(problems))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body"},
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error serving %s %s", request.method, request.url.path)
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.payload)


def create_app(
    config: Optional[PaymentsConfig] = None,
    *,
    platform: Optional[PaymentPlatformClient] = None,
    handlers: Optional[WebhookHandlers] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    """Build the checkout API with its configuration resolved once."""

    config = config or load_payments_config()

    app = FastAPI(title="Mobile Checkout API")
    app.state.payments_config = config
    app.state.payments_service = build_payments_service(
        config,
        platform=platform,
        handlers=handlers,
        sleep=sleep,
    )

    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_allow_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CheckoutError, handle_checkout_error)
    app.add_exception_handler(RequestValidationError, handle_invalid_request)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(payments_router)

    @app.get("/healthz")
    def healthz():
        return {"ok": True, "mode": config.environment}

    @app.on_event("startup")
    async def announce_startup() -> None:
        mode = "PRODUCTION" if config.is_production else "TEST"
        logger.info("Checkout backend ready, mode=%s api=%s", mode, config.api_base_url)
        for method, path, description in ENDPOINTS:
            logger.info("  %-4s %-32s %s", method, path, description)
        if not config.api_key:
            logger.warning("CREEM_API_KEY is not set; checkout and verification requests will fail")
        if not config.webhook_secret:
            logger.warning("CREEM_WEBHOOK_SECRET is not set; webhook deliveries will be refused")
        if config.allow_unverified_success:
            logger.warning("ALLOW_UNVERIFIED_SUCCESS is on; unverified checkouts will be reported as completed")

    return app


app = create_app()
