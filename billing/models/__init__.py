from billing.models.user import User
from billing.models.transaction import Transaction
from billing.models.audit_log import AuditLog

__all__ = [
    "User",
    "Transaction",
    "AuditLog",
]
