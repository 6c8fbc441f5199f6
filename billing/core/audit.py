"""Audit log for user lifecycle and payment events."""

from typing import Any

import structlog

from billing.models.audit_log import AuditLog


async def log_event(
    clerk_id: str | None,
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Append to audit_logs, tagged with the request id bound by the HTTP middleware."""
    entry = AuditLog(
        clerk_id=clerk_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        request_id=structlog.contextvars.get_contextvars().get("request_id"),
        metadata=metadata or {},
    )
    await entry.insert()
    return entry
