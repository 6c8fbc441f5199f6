from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from billing.core.security import verify_clerk_webhook
from billing.deps import get_current_clerk_id
from billing.services import credits as credits_service
from billing.services import payments as payments_service
from billing.services import users as users_service
from billing.services.gateway import RazorpayGateway, get_gateway

router = APIRouter()


class CreateOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # any value; unknown or malformed plans are rejected as "Invalid Plan"
    plan_id: Any = Field(default=None, alias="planId")


class VerifyPaymentRequest(BaseModel):
    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str


@router.post("/webhook")
async def clerk_webhook(request: Request):
    """Clerk user lifecycle webhook (Svix-signed): sync the local User record."""
    body = await request.body()
    event = verify_clerk_webhook(body, request.headers)
    await users_service.handle_clerk_event(event)
    return {}


@router.api_route("/credits", methods=["GET", "POST"])
async def user_credits(clerk_id: str = Depends(get_current_clerk_id)):
    """Return the caller's credit balance (0 if unknown)."""
    credits = await credits_service.get_balance(clerk_id)
    return {"success": True, "credits": credits}


@router.get("/plans")
async def plans():
    return {"success": True, "plans": payments_service.list_plans()}


@router.post("/create-order")
async def create_order(
    body: CreateOrderRequest,
    clerk_id: str = Depends(get_current_clerk_id),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    """Create a pending transaction and its Razorpay order; frontend opens checkout with order.id."""
    return await payments_service.create_order(clerk_id, body.plan_id, gateway)


@router.post("/verify-signature")
async def verify_signature(body: VerifyPaymentRequest):
    """Check the checkout signature only; no credits are applied."""
    payments_service.check_payment_signature(
        body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
    )
    return {"success": True, "message": "Payment verified successfully!"}


@router.post("/verify-payment")
async def verify_payment(
    body: VerifyPaymentRequest,
    gateway: RazorpayGateway = Depends(get_gateway),
):
    """Verify checkout signature, confirm the order is paid, apply credits once."""
    return await payments_service.verify_and_settle(
        body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature, gateway
    )


@router.get("/transactions")
async def transactions(
    clerk_id: str = Depends(get_current_clerk_id),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Caller's credit purchases, newest first."""
    items = await payments_service.list_transactions(clerk_id, limit, offset)
    out = [
        {
            "id": str(t.id),
            "plan": t.plan,
            "credits": t.credits,
            "amount": t.amount,
            "currency": t.currency,
            "payment": t.payment,
            "created_at": t.created_at.isoformat(),
        }
        for t in items
    ]
    return {"items": out, "limit": limit, "offset": offset}
