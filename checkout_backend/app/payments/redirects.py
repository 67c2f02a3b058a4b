"""Deep links used to hand the buyer back from the hosted checkout to the app."""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote


def build_success_deep_link(scheme: str, checkout_id: Optional[str]) -> str:
    """Return the app deep link for a finished checkout.

    ``checkout_id`` is expected in decoded form (as delivered by the query
    string parser) and is percent-encoded exactly once.
    """

    base = f"{scheme}://payment-success"
    if not checkout_id:
        return base
    return f"{base}?checkout_id={quote(checkout_id, safe='')}"


def build_cancel_deep_link(scheme: str) -> str:
    return f"{scheme}://"


__all__ = ["build_cancel_deep_link", "build_success_deep_link"]
