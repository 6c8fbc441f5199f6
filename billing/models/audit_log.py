from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class AuditLog(Document):
    clerk_id: str | None = None  # optional for system events
    event_type: str
    entity_type: str
    entity_id: str | None = None  # transaction id or clerk_id
    request_id: str | None = None  # None outside an HTTP request
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "audit_logs"
        indexes = [
            [("clerk_id", 1), ("created_at", -1)],
            [("entity_type", 1), ("entity_id", 1)],
            [("request_id", 1)],
        ]
