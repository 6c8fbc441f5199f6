import base64
import hashlib
import hmac
import os
import time
from types import SimpleNamespace
from typing import AsyncGenerator, Callable

import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient

CLERK_SECRET_BYTES = b"clerk-test-webhook-signing-key"

# Settings are read once; set test env before anything imports billing
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "credit_billing_test")
os.environ["CLERK_WEBHOOK_SECRET"] = "whsec_" + base64.b64encode(CLERK_SECRET_BYTES).decode()
os.environ["CLERK_JWKS_URL"] = "https://clerk.example.test/.well-known/jwks.json"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "rzp_webhook_secret"
os.environ["CURRENCY"] = "INR"


class FakeGateway:
    """In-memory stand-in for the Razorpay orders API."""

    def __init__(self):
        self.orders: dict[str, dict] = {}
        self.created: list[dict] = []

    async def create_order(self, data: dict) -> dict:
        self.created.append(data)
        order_id = f"order_test{len(self.orders) + 1:04d}"
        self.orders[order_id] = {
            "id": order_id,
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data["receipt"],
            "notes": data.get("notes", {}),
            "status": "created",
        }
        return dict(self.orders[order_id])

    async def fetch_order(self, order_id: str) -> dict:
        return dict(self.orders[order_id])

    def mark_paid(self, order_id: str) -> None:
        self.orders[order_id]["status"] = "paid"


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def db():
    from mongomock_motor import AsyncMongoMockClient

    from billing.db.init import init_db
    client = AsyncMongoMockClient()
    database = client["credit_billing_test"]
    await init_db(database)
    yield database


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def jwks(monkeypatch, rsa_private_key):
    """Serve the test RSA public key in place of the provider JWKS endpoint."""
    from billing.core import security
    fake = SimpleNamespace(
        get_signing_key_from_jwt=lambda token: SimpleNamespace(key=rsa_private_key.public_key())
    )
    monkeypatch.setattr(security, "get_jwks_client", lambda: fake)
    return fake


@pytest.fixture
def make_token(rsa_private_key) -> Callable[..., str]:
    def _make(sub: str | None = "user_test_1", expires_in: int = 300, key=None, **claims) -> str:
        now = int(time.time())
        payload = {"iat": now, "nbf": now, "exp": now + expires_in, **claims}
        if sub is not None:
            payload["sub"] = sub
        return jwt.encode(payload, key or rsa_private_key, algorithm="RS256")
    return _make


@pytest.fixture
def auth_headers(jwks, make_token) -> Callable[[str], dict]:
    def _headers(sub: str) -> dict:
        return {"Authorization": f"Bearer {make_token(sub)}"}
    return _headers


@pytest.fixture
def clerk_headers() -> Callable[..., dict]:
    """Svix signature headers for a webhook body."""
    def _sign(body: bytes, msg_id: str = "msg_test", timestamp: int | None = None) -> dict:
        ts = str(int(time.time()) if timestamp is None else timestamp)
        signed = f"{msg_id}.{ts}.".encode() + body
        digest = hmac.new(CLERK_SECRET_BYTES, signed, hashlib.sha256).digest()
        return {
            "svix-id": msg_id,
            "svix-timestamp": ts,
            "svix-signature": "v1," + base64.b64encode(digest).decode(),
            "content-type": "application/json",
        }
    return _sign


@pytest.fixture
def payment_signature() -> Callable[[str, str], str]:
    from billing.core.config import get_settings
    from billing.core.security import sign_payment

    def _sign(order_id: str, payment_id: str) -> str:
        return sign_payment(order_id, payment_id, get_settings().razorpay_key_secret)
    return _sign


@pytest_asyncio.fixture
async def client(db, gateway) -> AsyncGenerator[AsyncClient, None]:
    from billing.main import app
    from billing.services.gateway import get_gateway
    app.dependency_overrides[get_gateway] = lambda: gateway
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
