from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import List

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedPlatform

from checkout_backend.app.payments import PaymentsConfig, WebhookEvent, compute_signature
from checkout_backend.main import create_app


class CancellationRecorder:
    def __init__(self) -> None:
        self.canceled: List[WebhookEvent] = []
        self.other: List[WebhookEvent] = []

    def on_subscription_canceled(self, event: WebhookEvent) -> None:
        self.canceled.append(event)

    def on_checkout_completed(self, event: WebhookEvent) -> None:
        self.other.append(event)

    on_subscription_active = on_checkout_completed
    on_subscription_paid = on_checkout_completed
    on_subscription_past_due = on_checkout_completed
    on_refund_created = on_checkout_completed


def _client(config: PaymentsConfig, platform=None, handlers=None, sleeps=None, **kwargs) -> TestClient:
    app = create_app(
        config,
        platform=platform,
        handlers=handlers,
        sleep=(sleeps.append if sleeps is not None else (lambda _seconds: None)),
    )
    return TestClient(app, **kwargs)


def test_checkout_then_verify_end_to_end(payments_config, sleeps):
    platform = ScriptedPlatform(["pending", "pending", "completed"])
    client = _client(payments_config, platform, sleeps=sleeps)

    created = client.post("/checkout", json={"productId": "p_1", "planName": "Pro"})

    assert created.status_code == 200
    assert created.json() == {"checkoutUrl": "https://checkout.creem.io/ch_123", "checkoutId": "ch_123"}
    assert platform.create_calls[0]["success_url"] == (
        "https://api.example.com/payment-success?checkout_id={CHECKOUT_ID}"
    )

    verified = client.get(f"/verify-checkout/{created.json()['checkoutId']}")

    assert verified.status_code == 200
    assert verified.json() == {
        "id": "ch_123",
        "status": "completed",
        "amount": 1999,
        "currency": "USD",
        "customer_id": "cust_1",
        "product": {"name": "Pro", "id": "p_1"},
        "verified": True,
    }
    assert len(platform.get_calls) == 3
    assert len(sleeps) == 2


def test_verify_never_echoes_unlisted_platform_fields(payments_config):
    platform = ScriptedPlatform(
        [{"id": "ch_9", "status": "paid", "product": "prod_9", "mode": "test", "secret_stuff": "x"}]
    )
    response = _client(payments_config, platform).get("/verify-checkout/ch_9")

    assert response.status_code == 200
    body = response.json()
    assert "mode" not in body
    assert "secret_stuff" not in body
    assert body["product"] == {"name": None, "id": "prod_9"}


def test_verify_reports_unfinished_checkout_as_unverified(payments_config):
    platform = ScriptedPlatform(["expired"])
    response = _client(payments_config, platform).get("/verify-checkout/ch_123")

    assert response.status_code == 200
    assert response.json()["status"] == "expired"
    assert response.json()["verified"] is False


def test_verify_propagates_non_retryable_upstream_failure(payments_config):
    platform = ScriptedPlatform([403])
    response = _client(payments_config, platform).get("/verify-checkout/ch_123")

    assert response.status_code == 403
    assert response.json() == {"error": "Checkout lookup failed", "detail": "upstream said 403"}


def test_verify_rejects_placeholder_identifier(payments_config):
    platform = ScriptedPlatform()
    response = _client(payments_config, platform).get("/verify-checkout/%7BCHECKOUT_ID%7D")

    assert response.status_code == 400
    assert platform.get_calls == []


def test_unverified_success_fallback_is_explicit_and_marked(payments_config):
    config = replace(payments_config, allow_unverified_success=True)
    platform = ScriptedPlatform([500] * config.verify_max_attempts)
    response = _client(config, platform).get("/verify-checkout/ch_123")

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["verified"] is False
    assert response.json()["amount"] is None


def test_checkout_requires_product_id(payments_config):
    platform = ScriptedPlatform()
    response = _client(payments_config, platform).post("/checkout", json={"planName": "Pro"})

    assert response.status_code == 400
    assert response.json() == {"error": "productId is required"}
    assert platform.create_calls == []


def test_checkout_rejects_malformed_json(payments_config):
    platform = ScriptedPlatform()
    response = _client(payments_config, platform).post(
        "/checkout",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body"}
    assert platform.create_calls == []


def test_checkout_propagates_upstream_status(payments_config):
    platform = ScriptedPlatform(create_reply=500)
    response = _client(payments_config, platform).post("/checkout", json={"productId": "p_1"})

    assert response.status_code == 500
    assert response.json() == {"error": "Creem API error", "detail": "upstream said 500"}
    assert len(platform.create_calls) == 1


def test_checkout_derives_callback_from_forwarded_headers(payments_config):
    config = replace(payments_config, public_base_url=None)
    platform = ScriptedPlatform()
    client = _client(config, platform)

    client.post(
        "/checkout",
        json={"productId": "p_1"},
        headers={"x-forwarded-host": "abc.ngrok.app", "x-forwarded-proto": "https"},
    )

    assert platform.create_calls[0]["success_url"].startswith("https://abc.ngrok.app/payment-success?")


def test_missing_api_key_fails_at_request_time(payments_config):
    config = replace(payments_config, api_key="")
    response = _client(config).post("/checkout", json={"productId": "p_1"})

    assert response.status_code == 500
    assert response.json() == {"error": "Payment platform API key is not configured"}


def test_unexpected_error_returns_generic_500(payments_config):
    class ExplodingPlatform(ScriptedPlatform):
        def get_checkout(self, checkout_id: str):
            raise RuntimeError("socket closed")

    client = _client(payments_config, ExplodingPlatform(), raise_server_exceptions=False)
    response = client.get("/verify-checkout/ch_123")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.parametrize(
    "query, location",
    [
        ("?checkout_id=abc%20def", "creemapp://payment-success?checkout_id=abc%20def"),
        ("?checkout_id=ch_123", "creemapp://payment-success?checkout_id=ch_123"),
        ("", "creemapp://payment-success"),
    ],
)
def test_payment_success_redirects_into_app(payments_config, query, location):
    response = _client(payments_config, ScriptedPlatform()).get(f"/payment-success{query}", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == location


def test_payment_cancelled_redirects_to_app_root(payments_config):
    response = _client(payments_config, ScriptedPlatform()).get("/payment-cancelled", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "creemapp://"


def test_signed_webhook_is_acknowledged_and_dispatched_once(payments_config):
    handlers = CancellationRecorder()
    client = _client(payments_config, ScriptedPlatform(), handlers=handlers)
    body = json.dumps({"id": "evt_1", "eventType": "subscription.canceled", "object": {"id": "sub_1"}}).encode()

    response = client.post(
        "/webhook",
        content=body,
        headers={"creem-signature": compute_signature(body, payments_config.webhook_secret)},
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert [event.object["id"] for event in handlers.canceled] == ["sub_1"]
    assert handlers.other == []


def test_webhook_with_flipped_signature_byte_is_rejected(payments_config):
    handlers = CancellationRecorder()
    client = _client(payments_config, ScriptedPlatform(), handlers=handlers)
    body = json.dumps({"eventType": "subscription.canceled", "object": {"id": "sub_1"}}).encode()
    signature = compute_signature(body, payments_config.webhook_secret)
    flipped = ("0" if signature[0] != "0" else "1") + signature[1:]

    response = client.post("/webhook", content=body, headers={"creem-signature": flipped})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    assert handlers.canceled == []


def test_webhook_unknown_event_is_acknowledged(payments_config):
    handlers = CancellationRecorder()
    client = _client(payments_config, ScriptedPlatform(), handlers=handlers)
    body = b'{"eventType":"payout.sent","object":{}}'

    response = client.post(
        "/webhook",
        content=body,
        headers={"creem-signature": compute_signature(body, payments_config.webhook_secret)},
    )

    assert response.status_code == 200
    assert handlers.canceled == [] and handlers.other == []


def test_healthz_reports_mode(payments_config):
    response = _client(payments_config, ScriptedPlatform()).get("/healthz")

    assert response.json() == {"ok": True, "mode": "test"}


def test_verify_reports_fractional_amount_as_given(payments_config):
    body = {"id": "ch_123", "status": "paid", "amount": 19.99, "currency": "EUR", "product": {"id": "p_1"}}
    platform = ScriptedPlatform([body])
    response = _client(payments_config, platform).get("/verify-checkout/ch_123")

    assert response.status_code == 200
    assert response.json()["amount"] == 19.99
    assert response.json()["verified"] is True


def test_checkout_redirect_from_platform_becomes_bad_gateway(payments_config):
    platform = ScriptedPlatform(create_reply=302)
    response = _client(payments_config, platform).post("/checkout", json={"productId": "p_1"})

    assert response.status_code == 502
    assert "location" not in response.headers
    assert response.json() == {"error": "Creem API error", "detail": "upstream said 302"}


def test_verify_redirect_from_platform_becomes_bad_gateway(payments_config):
    platform = ScriptedPlatform([303])
    response = _client(payments_config, platform).get("/verify-checkout/ch_123")

    assert response.status_code == 502
    assert response.json() == {"error": "Checkout lookup failed", "detail": "upstream said 303"}


def test_rejected_request_log_omits_submitted_values(payments_config, caplog):
    platform = ScriptedPlatform()
    client = _client(payments_config, platform)

    with caplog.at_level(logging.INFO, logger="checkout_backend"):
        response = client.post("/checkout", json={"productId": "p_1", "customerEmail": ["buyer@example.com"]})

    assert response.status_code == 400
    assert "customerEmail" in caplog.text
    assert "buyer@example.com" not in caplog.text
    assert platform.create_calls == []
