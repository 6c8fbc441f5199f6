from fastapi import APIRouter, Depends, Header, Request

from billing.services import payments as payments_service
from billing.services.gateway import RazorpayGateway, get_gateway

router = APIRouter()


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str = Header(..., alias="X-Razorpay-Signature"),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    """Razorpay webhook: order.paid / payment.captured -> settle credits (idempotent)."""
    body = await request.body()
    await payments_service.handle_webhook(body, x_razorpay_signature, gateway)
    return {"status": "ok"}
