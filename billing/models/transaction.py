from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field


class Transaction(Document):
    """A credit purchase; its id is the Razorpay order receipt."""
    clerk_id: Indexed(str)
    plan: str
    credits: int
    amount: int  # major currency units
    currency: str = "INR"
    payment: bool = False  # false -> true once, on settlement
    created_at: datetime = Field(default_factory=datetime.utcnow)
    paid_at: datetime | None = None

    class Settings:
        name = "transactions"
        indexes = [[("clerk_id", 1), ("created_at", -1)]]
