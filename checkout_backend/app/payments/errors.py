"""Exceptions raised by the checkout and webhook flows."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import status


@dataclass
class CheckoutError(Exception):
    """Base error carrying the HTTP status and JSON body surfaced to callers."""

    message: str
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def payload(self) -> Dict[str, Any]:
        """Serialized representation suitable for JSON responses."""

        body: Dict[str, Any] = {"error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


@dataclass
class ValidationError(CheckoutError):
    """A required input is missing or unusable."""

    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass
class UpstreamError(CheckoutError):
    """The payment platform answered with a non-success status."""

    status_code: int = status.HTTP_502_BAD_GATEWAY

    def __post_init__(self) -> None:
        super().__post_init__()
        # Only error statuses are relayed; anything else becomes a bad gateway.
        if self.status_code < status.HTTP_400_BAD_REQUEST:
            self.status_code = status.HTTP_502_BAD_GATEWAY


@dataclass
class ConfigurationError(CheckoutError):
    """The deployment is missing settings needed to serve the request."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


@dataclass
class AuthenticationError(CheckoutError):
    """A webhook delivery failed signature verification."""

    status_code: int = status.HTTP_401_UNAUTHORIZED

    @property
    def payload(self) -> Dict[str, Any]:
        return {"error": self.message}


@dataclass
class InternalError(CheckoutError):
    message: str = "Internal server error"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = [
    "AuthenticationError",
    "CheckoutError",
    "ConfigurationError",
    "InternalError",
    "UpstreamError",
    "ValidationError",
]
