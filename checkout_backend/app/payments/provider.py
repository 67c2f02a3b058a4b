"""Payment platform integration used by the checkout flows."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from .errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformResponse:
    """Status code and raw body of a platform API call."""

    status_code: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Dict[str, Any]:
        try:
            payload = json.loads(self.text)
        except ValueError as exc:
            raise UpstreamError("Malformed response from payment platform", detail=self.text[:500]) from exc
        if not isinstance(payload, dict):
            raise UpstreamError("Malformed response from payment platform", detail=self.text[:500])
        return payload


class PaymentPlatformClient(Protocol):
    """External payment platform operations required by the backend."""

    def create_checkout(
        self,
        *,
        product_id: str,
        success_url: str,
        metadata: Optional[Dict[str, str]] = None,
        customer_email: Optional[str] = None,
    ) -> PlatformResponse:
        """Create a hosted checkout session."""

    def get_checkout(self, checkout_id: str) -> PlatformResponse:
        """Fetch the current state of a checkout session."""


class CreemPlatformClient:
    """HTTP client for the Creem REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        timeout: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Payment platform API key is not configured")
        return {"x-api-key": self.api_key, "Accept": "application/json"}

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    def create_checkout(
        self,
        *,
        product_id: str,
        success_url: str,
        metadata: Optional[Dict[str, str]] = None,
        customer_email: Optional[str] = None,
    ) -> PlatformResponse:
        body: Dict[str, Any] = {"product_id": product_id, "success_url": success_url}
        if metadata:
            body["metadata"] = dict(metadata)
        if customer_email:
            body["customer"] = {"email": customer_email}

        headers = self._headers()
        with self._client() as client:
            response = client.post("/checkouts", json=body, headers=headers)
        logger.debug("POST /checkouts -> %s", response.status_code)
        return PlatformResponse(status_code=response.status_code, text=response.text)

    def get_checkout(self, checkout_id: str) -> PlatformResponse:
        headers = self._headers()
        with self._client() as client:
            response = client.get("/checkouts", params={"checkout_id": checkout_id}, headers=headers)
        logger.debug("GET /checkouts checkout_id=%s -> %s", checkout_id, response.status_code)
        return PlatformResponse(status_code=response.status_code, text=response.text)


__all__ = ["CreemPlatformClient", "PaymentPlatformClient", "PlatformResponse"]
