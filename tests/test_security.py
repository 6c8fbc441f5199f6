"""Bearer token, checkout signature and webhook signature checks."""

import json
import time

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from billing.core.exceptions import UnauthorizedError
from billing.core.security import (
    sign_payment,
    verify_clerk_webhook,
    verify_payment_signature,
    verify_razorpay_webhook,
    verify_session_token,
)


def test_session_token_returns_claims(jwks, make_token):
    claims = verify_session_token(make_token("user_42"))
    assert claims["sub"] == "user_42"


def test_session_token_signed_by_other_key_rejected(jwks, make_token):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with pytest.raises(UnauthorizedError):
        verify_session_token(make_token("user_42", key=other))


def test_expired_session_token_rejected(jwks, make_token):
    with pytest.raises(UnauthorizedError, match="expired"):
        verify_session_token(make_token("user_42", expires_in=-60))


def test_session_token_without_sub_rejected(jwks, make_token):
    with pytest.raises(UnauthorizedError):
        verify_session_token(make_token(sub=None))


def test_garbage_token_rejected(jwks):
    with pytest.raises(UnauthorizedError):
        verify_session_token("not-a-jwt")


def test_payment_signature_roundtrip():
    signature = sign_payment("order_1", "pay_1", "secret")
    assert verify_payment_signature("order_1", "pay_1", signature, "secret")
    assert not verify_payment_signature("order_1", "pay_2", signature, "secret")
    assert not verify_payment_signature("order_1", "pay_1", signature, "other-secret")
    assert not verify_payment_signature("order_1", "pay_1", "", "secret")


def test_payment_signature_is_hmac_of_joined_ids():
    import hashlib
    import hmac
    expected = hmac.new(b"secret", b"order_1|pay_1", hashlib.sha256).hexdigest()
    assert sign_payment("order_1", "pay_1", "secret") == expected


def test_razorpay_webhook_signature():
    import hashlib
    import hmac
    body = b'{"event":"order.paid"}'
    good = hmac.new(b"whs", body, hashlib.sha256).hexdigest()
    assert verify_razorpay_webhook(body, good, "whs")
    assert not verify_razorpay_webhook(body + b" ", good, "whs")


def test_clerk_webhook_valid(clerk_headers):
    body = json.dumps({"type": "user.deleted", "data": {"id": "user_1"}}).encode()
    event = verify_clerk_webhook(body, clerk_headers(body))
    assert event["type"] == "user.deleted"


def test_clerk_webhook_accepts_standard_header_names(clerk_headers):
    body = b'{"type": "user.deleted", "data": {"id": "user_1"}}'
    headers = {k.replace("svix-", "webhook-"): v for k, v in clerk_headers(body).items()}
    assert verify_clerk_webhook(body, headers)["data"]["id"] == "user_1"


def test_clerk_webhook_tampered_body(clerk_headers):
    body = b'{"type": "user.deleted", "data": {"id": "user_1"}}'
    headers = clerk_headers(body)
    with pytest.raises(UnauthorizedError):
        verify_clerk_webhook(body.replace(b"user_1", b"user_2"), headers)


def test_clerk_webhook_stale_timestamp(clerk_headers):
    body = b'{"type": "user.deleted", "data": {"id": "user_1"}}'
    headers = clerk_headers(body, timestamp=int(time.time()) - 3600)
    with pytest.raises(UnauthorizedError):
        verify_clerk_webhook(body, headers)


def test_clerk_webhook_missing_headers():
    with pytest.raises(UnauthorizedError):
        verify_clerk_webhook(b"{}", {})


def test_clerk_webhook_requires_secret(monkeypatch, clerk_headers):
    from billing.core.config import get_settings
    monkeypatch.setattr(get_settings(), "clerk_webhook_secret", "")
    body = b"{}"
    with pytest.raises(UnauthorizedError, match="not configured"):
        verify_clerk_webhook(body, clerk_headers(body))
