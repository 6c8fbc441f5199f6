"""Credit balance reads and the exactly-once credit increment."""

from datetime import datetime

from beanie import PydanticObjectId

from billing.models.user import User


async def get_balance(clerk_id: str) -> int:
    """Return current balance for user (0 if no record)."""
    user = await User.find_one(User.clerk_id == clerk_id)
    return user.credit_balance if user else 0


async def credit_for_transaction(clerk_id: str, credits: int, transaction_id: PydanticObjectId) -> bool:
    """
    Add credits to the user once per transaction.
    Single-document conditional update: matches only while transaction_id is not yet
    in settled_transactions, so repeated or concurrent calls increment at most once.
    Returns True if this call applied the credits.
    """
    result = await User.find_one(
        User.clerk_id == clerk_id,
        {"settled_transactions": {"$ne": transaction_id}},
    ).update(
        {
            "$inc": {"credit_balance": credits},
            "$push": {"settled_transactions": transaction_id},
            "$set": {"updated_at": datetime.utcnow()},
        }
    )
    return bool(result and result.modified_count)
