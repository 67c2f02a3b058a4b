from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Dict, List, Optional, Union

import pytest

from checkout_backend.app.payments import PaymentsConfig, PlatformResponse, load_payments_config

ScriptedReply = Union[int, str, Dict[str, Any], PlatformResponse]


def reply(value: ScriptedReply, checkout_id: str = "ch_123") -> PlatformResponse:
    """Turn a shorthand reply into a platform response.

    An ``int`` is an error status, a ``str`` a checkout status and a ``dict``
    a full checkout body.
    """

    if isinstance(value, PlatformResponse):
        return value
    if isinstance(value, int):
        return PlatformResponse(status_code=value, text=f"upstream said {value}")
    if isinstance(value, str):
        body = {
            "id": checkout_id,
            "status": value,
            "amount": 1999,
            "currency": "USD",
            "customer_id": "cust_1",
            "product": {"id": "p_1", "name": "Pro"},
            "mode": "test",
        }
        return PlatformResponse(status_code=200, text=json.dumps(body))
    return PlatformResponse(status_code=200, text=json.dumps(value))


class ScriptedPlatform:
    """Fake platform replaying canned responses and recording calls."""

    def __init__(
        self,
        checkout_replies: Optional[List[ScriptedReply]] = None,
        create_reply: Optional[ScriptedReply] = None,
    ) -> None:
        self.checkout_replies = list(checkout_replies or [])
        self.create_reply = create_reply
        self.get_calls: List[str] = []
        self.create_calls: List[Dict[str, Any]] = []

    def create_checkout(
        self,
        *,
        product_id: str,
        success_url: str,
        metadata: Optional[Dict[str, str]] = None,
        customer_email: Optional[str] = None,
    ) -> PlatformResponse:
        self.create_calls.append(
            {
                "product_id": product_id,
                "success_url": success_url,
                "metadata": metadata,
                "customer_email": customer_email,
            }
        )
        if self.create_reply is None:
            return reply({"id": "ch_123", "checkout_url": "https://checkout.creem.io/ch_123", "status": "pending"})
        return reply(self.create_reply)

    def get_checkout(self, checkout_id: str) -> PlatformResponse:
        self.get_calls.append(checkout_id)
        if not self.checkout_replies:
            raise AssertionError("platform called more times than scripted")
        return reply(self.checkout_replies.pop(0), checkout_id)


@pytest.fixture
def payments_config() -> PaymentsConfig:
    config = load_payments_config(
        env={
            "CREEM_API_KEY": "creem_test_key",
            "CREEM_WEBHOOK_SECRET": "whsec_test",
            "PUBLIC_BASE_URL": "https://api.example.com/",
        }
    )
    return replace(config, verify_backoff_seconds=0.0)


@pytest.fixture
def sleeps() -> List[float]:
    return []
