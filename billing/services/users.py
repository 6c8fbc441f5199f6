"""Identity-provider webhook events -> local User records."""

from datetime import datetime
from typing import Any

from pymongo.errors import DuplicateKeyError

from billing.core.audit import log_event
from billing.core.exceptions import BadRequestError
from billing.core.logging import get_logger
from billing.models.user import User

log = get_logger(__name__)


def _primary_email(data: dict[str, Any]) -> str:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if primary_id and address.get("id") == primary_id:
            return address.get("email_address") or ""
    if addresses:
        return addresses[0].get("email_address") or ""
    return ""


def user_fields_from_event(data: dict[str, Any]) -> dict[str, Any]:
    """Map a Clerk user object to User contact fields."""
    return {
        "email": _primary_email(data),
        "first_name": data.get("first_name") or "",
        "last_name": data.get("last_name") or "",
        "photo": data.get("image_url"),
    }


def _clerk_id(data: dict[str, Any]) -> str:
    clerk_id = data.get("id")
    if not clerk_id:
        raise BadRequestError("Missing user id in webhook data")
    return clerk_id


async def _overwrite(clerk_id: str, fields: dict[str, Any]) -> bool:
    result = await User.find_one(User.clerk_id == clerk_id).update(
        {"$set": {**fields, "updated_at": datetime.utcnow()}}
    )
    return bool(result and result.matched_count)


async def create_user(data: dict[str, Any]) -> User:
    """user.created; a repeated create for a known clerk_id is applied as an update."""
    clerk_id = _clerk_id(data)
    fields = user_fields_from_event(data)
    user = await User.find_one(User.clerk_id == clerk_id)
    if user:
        await _overwrite(clerk_id, fields)
        log.info("user_create_as_update", clerk_id=clerk_id)
        return await User.find_one(User.clerk_id == clerk_id)
    user = User(clerk_id=clerk_id, **fields)
    try:
        await user.insert()
    except DuplicateKeyError:
        # lost an insert race to a concurrent delivery
        await _overwrite(clerk_id, fields)
        log.info("user_create_as_update", clerk_id=clerk_id)
        return await User.find_one(User.clerk_id == clerk_id)
    log.info("user_created", clerk_id=clerk_id, email=user.email)
    await log_event(clerk_id, "user_created", "user", str(user.id), {"email": user.email})
    return user


async def update_user(data: dict[str, Any]) -> bool:
    """user.updated; no-op when the user is unknown."""
    clerk_id = _clerk_id(data)
    fields = user_fields_from_event(data)
    updated = await _overwrite(clerk_id, fields)
    if not updated:
        log.info("user_update_skipped", clerk_id=clerk_id, reason="not_found")
        return False
    log.info("user_updated", clerk_id=clerk_id)
    await log_event(clerk_id, "user_updated", "user", clerk_id, {"email": fields["email"]})
    return True


async def delete_user(data: dict[str, Any]) -> bool:
    """user.deleted; no-op when the user is unknown."""
    clerk_id = _clerk_id(data)
    result = await User.find(User.clerk_id == clerk_id).delete()
    if not result or not result.deleted_count:
        log.info("user_delete_skipped", clerk_id=clerk_id, reason="not_found")
        return False
    log.info("user_deleted", clerk_id=clerk_id)
    await log_event(clerk_id, "user_deleted", "user", clerk_id)
    return True


async def handle_clerk_event(event: dict[str, Any]) -> None:
    event_type = event.get("type")
    data = event.get("data") or {}
    if event_type == "user.created":
        await create_user(data)
    elif event_type == "user.updated":
        await update_user(data)
    elif event_type == "user.deleted":
        await delete_user(data)
    else:
        log.info("clerk_webhook_ignored", event_type=event_type)
