from datetime import datetime

from beanie import Document, Indexed, PydanticObjectId
from pydantic import Field


class User(Document):
    """Local mirror of an identity-provider user plus its credit balance."""
    clerk_id: Indexed(str, unique=True)
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    photo: str | None = None
    credit_balance: int = 0
    # Transactions already credited to this user; guards against double-crediting
    settled_transactions: list[PydanticObjectId] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
