"""Credit plans, Razorpay orders, payment verification and idempotent settlement."""

import json
from datetime import datetime
from typing import Any, NamedTuple, Protocol

from beanie import PydanticObjectId
from bson import ObjectId

from billing.core.audit import log_event
from billing.core.config import get_settings
from billing.core.exceptions import BadRequestError, NotFoundError
from billing.core.logging import get_logger
from billing.core.security import verify_payment_signature, verify_razorpay_webhook
from billing.models.transaction import Transaction
from billing.models.user import User
from billing.services import credits as credits_service

log = get_logger(__name__)


class Plan(NamedTuple):
    name: str
    credits: int
    amount: int  # major currency units


PLANS: dict[str, Plan] = {
    "Basic": Plan("Basic", 100, 10),
    "Advanced": Plan("Advanced", 500, 50),
    "Business": Plan("Business", 5000, 250),
}

SETTLEMENT_EVENTS = ("order.paid", "payment.captured")


class Gateway(Protocol):
    async def create_order(self, data: dict[str, Any]) -> dict[str, Any]: ...

    async def fetch_order(self, order_id: str) -> dict[str, Any]: ...


def get_plan(plan_id: Any) -> Plan:
    plan = PLANS.get(plan_id) if isinstance(plan_id, str) else None
    if not plan:
        raise BadRequestError("Invalid Plan")
    return plan


def list_plans() -> list[dict]:
    return [{"id": p.name, "credits": p.credits, "amount": p.amount} for p in PLANS.values()]


async def create_order(clerk_id: str, plan_id: Any, gateway: Gateway) -> dict:
    """Persist a pending Transaction, then open a Razorpay order whose receipt is its id."""
    settings = get_settings()
    user = await User.find_one(User.clerk_id == clerk_id)
    if not user:
        raise BadRequestError("Invalid User")
    plan = get_plan(plan_id)

    transaction = Transaction(
        clerk_id=clerk_id,
        plan=plan.name,
        credits=plan.credits,
        amount=plan.amount,
        currency=settings.currency,
    )
    await transaction.insert()

    # Gateway failure here leaves the transaction unpaid; it is never settled
    order = await gateway.create_order(
        {
            "amount": plan.amount * 100,
            "currency": settings.currency,
            "receipt": str(transaction.id),
            "notes": {"planId": plan.name, "credits": plan.credits, "clerkId": clerk_id},
        }
    )
    log.info(
        "order_created",
        clerk_id=clerk_id,
        plan=plan.name,
        transaction_id=str(transaction.id),
        order_id=order.get("id"),
    )
    await log_event(
        clerk_id,
        "order_created",
        "transaction",
        str(transaction.id),
        {"plan": plan.name, "order_id": order.get("id"), "amount": plan.amount},
    )
    return {"success": True, "order": order}


def check_payment_signature(order_id: str, payment_id: str, signature: str) -> None:
    """Raise BadRequestError unless signature is the checkout HMAC of order_id|payment_id."""
    settings = get_settings()
    if not settings.razorpay_key_secret:
        raise BadRequestError("Payments not configured")
    if not verify_payment_signature(order_id, payment_id, signature, settings.razorpay_key_secret):
        log.warning("payment_signature_invalid", order_id=order_id, payment_id=payment_id)
        raise BadRequestError("Invalid payment signature!")


async def _transaction_for_receipt(receipt: str | None) -> Transaction | None:
    if not receipt or not ObjectId.is_valid(receipt):
        return None
    return await Transaction.get(PydanticObjectId(receipt))


async def settle_order(order_id: str, gateway: Gateway) -> dict:
    """
    Apply a paid order's credits exactly once.

    Order status comes from the gateway, never the caller. The balance increment is
    guarded on the user document (see credits.credit_for_transaction) and runs before
    the paid flag is set; a retry after a crash between the two finishes the flag
    without crediting again.
    """
    order = await gateway.fetch_order(order_id)
    if order.get("status") != "paid":
        log.info("settlement_skipped", order_id=order_id, status=order.get("status"))
        return {"success": False, "message": "Payment not successful"}

    transaction = await _transaction_for_receipt(order.get("receipt"))
    if not transaction or transaction.payment:
        log.info("settlement_skipped", order_id=order_id, reason="already_processed")
        return {"success": False, "message": "Payment already processed"}

    user = await User.find_one(User.clerk_id == transaction.clerk_id)
    if not user:
        raise NotFoundError("User not found")

    credited = await credits_service.credit_for_transaction(
        transaction.clerk_id, transaction.credits, transaction.id
    )
    await Transaction.find_one({"_id": transaction.id, "payment": False}).update(
        {"$set": {"payment": True, "paid_at": datetime.utcnow()}}
    )
    if not credited:
        log.info("settlement_skipped", order_id=order_id, reason="already_credited")
        return {"success": False, "message": "Payment already processed"}

    log.info(
        "credits_added",
        clerk_id=transaction.clerk_id,
        credits=transaction.credits,
        transaction_id=str(transaction.id),
        order_id=order_id,
    )
    await log_event(
        transaction.clerk_id,
        "credits_added",
        "transaction",
        str(transaction.id),
        {"order_id": order_id, "credits": transaction.credits},
    )
    return {"success": True, "message": "Credits Added"}


async def verify_and_settle(order_id: str, payment_id: str, signature: str, gateway: Gateway) -> dict:
    check_payment_signature(order_id, payment_id, signature)
    return await settle_order(order_id, gateway)


async def handle_webhook(payload: bytes, signature: str, gateway: Gateway) -> dict | None:
    """Verify Razorpay webhook HMAC and settle order.paid / payment.captured events."""
    settings = get_settings()
    if not settings.razorpay_webhook_secret:
        raise BadRequestError("Webhook secret not configured")
    if not verify_razorpay_webhook(payload, signature, settings.razorpay_webhook_secret):
        raise BadRequestError("Invalid webhook signature")
    try:
        data = json.loads(payload.decode())
    except ValueError as e:
        raise BadRequestError("Invalid webhook payload") from e
    if not isinstance(data, dict):
        raise BadRequestError("Invalid webhook payload")
    event = data.get("event")
    if event not in SETTLEMENT_EVENTS:
        log.info("razorpay_webhook_ignored", webhook_event=event)
        return None
    entities = data.get("payload", {})
    order_id = (
        entities.get("order", {}).get("entity", {}).get("id")
        or entities.get("payment", {}).get("entity", {}).get("order_id")
    )
    if not order_id:
        log.info("razorpay_webhook_ignored", webhook_event=event, reason="no_order_id")
        return None
    return await settle_order(order_id, gateway)


async def list_transactions(clerk_id: str, limit: int, offset: int) -> list[Transaction]:
    return (
        await Transaction.find(Transaction.clerk_id == clerk_id)
        .sort(-Transaction.created_at)
        .skip(offset)
        .limit(limit)
        .to_list()
    )
