"""Razorpay client wrapper, built once from settings and injected into handlers."""

from functools import lru_cache
from typing import Any

from fastapi.concurrency import run_in_threadpool

from billing.core.config import get_settings
from billing.core.exceptions import BadRequestError


class RazorpayGateway:
    """Async facade over the blocking razorpay SDK."""

    def __init__(self, key_id: str, key_secret: str):
        import razorpay
        self.key_id = key_id
        self._client = razorpay.Client(auth=(key_id, key_secret))

    async def create_order(self, data: dict[str, Any]) -> dict[str, Any]:
        return await run_in_threadpool(self._client.order.create, data)

    async def fetch_order(self, order_id: str) -> dict[str, Any]:
        return await run_in_threadpool(self._client.order.fetch, order_id)


@lru_cache
def _gateway(key_id: str, key_secret: str) -> RazorpayGateway:
    return RazorpayGateway(key_id, key_secret)


def get_gateway() -> RazorpayGateway:
    """Dependency: process-wide gateway client."""
    settings = get_settings()
    if not settings.razorpay_key_id or not settings.razorpay_key_secret:
        raise BadRequestError("Payments not configured")
    return _gateway(settings.razorpay_key_id, settings.razorpay_key_secret)
