import hashlib
import hmac
from functools import lru_cache
from typing import Any, Mapping

import jwt
from jwt import PyJWKClient
from standardwebhooks.webhooks import Webhook, WebhookVerificationError

from billing.core.config import get_settings
from billing.core.exceptions import BadRequestError, UnauthorizedError
from billing.core.logging import get_logger

log = get_logger(__name__)

# Clerk delivers through Svix; Standard Webhooks names the same headers webhook-*
_WEBHOOK_HEADERS = ("id", "timestamp", "signature")


@lru_cache(maxsize=4)
def _jwks_client(jwks_url: str) -> PyJWKClient:
    return PyJWKClient(jwks_url, cache_keys=True)


def get_jwks_client() -> PyJWKClient:
    """JWKS client for the identity provider; cached per URL."""
    settings = get_settings()
    if not settings.clerk_jwks_url:
        raise UnauthorizedError("Token verification not configured")
    return _jwks_client(settings.clerk_jwks_url)


def verify_session_token(token: str) -> dict[str, Any]:
    """Verify an RS256 session token against the provider JWKS and return its claims."""
    settings = get_settings()
    jwks_client = get_jwks_client()
    try:
        signing_key = jwks_client.get_signing_key_from_jwt(token)
        claims = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256"],
            issuer=settings.clerk_issuer or None,
            leeway=settings.jwt_leeway_seconds,
            options={"verify_aud": False, "require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Session expired. Login Again.") from e
    except jwt.PyJWTError as e:
        log.info("token_rejected", reason=str(e))
        raise UnauthorizedError(f"Invalid token: {e}") from e
    allowed = settings.clerk_authorized_parties
    if allowed and claims.get("azp") not in allowed:
        raise UnauthorizedError("Invalid token: unauthorized party")
    return claims


def sign_payment(order_id: str, payment_id: str, secret: str) -> str:
    """Razorpay checkout signature: hex HMAC-SHA256 of 'order_id|payment_id'."""
    return hmac.new(
        secret.encode("utf-8"),
        f"{order_id}|{payment_id}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = sign_payment(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))


def verify_razorpay_webhook(payload: bytes, signature: str, secret: str) -> bool:
    expected = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))


def verify_clerk_webhook(payload: bytes, headers: Mapping[str, str]) -> dict[str, Any]:
    """Check the Svix signature on an identity-provider webhook; return the parsed event."""
    settings = get_settings()
    if not settings.clerk_webhook_secret:
        raise UnauthorizedError("Webhook secret not configured")
    normalized = {}
    for name in _WEBHOOK_HEADERS:
        value = headers.get(f"svix-{name}") or headers.get(f"webhook-{name}") or ""
        normalized[f"webhook-{name}"] = value
    try:
        event = Webhook(settings.clerk_webhook_secret).verify(payload, normalized)
    except WebhookVerificationError as e:
        raise UnauthorizedError(f"Invalid webhook signature: {e}") from e
    except ValueError as e:
        # undecodable body or malformed signature header
        raise UnauthorizedError("Invalid webhook payload") from e
    if not isinstance(event, dict):
        raise BadRequestError("Invalid webhook payload")
    return event
