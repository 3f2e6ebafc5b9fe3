"""
Security Audit Logging
Authentication events go to the "auth.audit" logger with structured extra fields.
"""

import logging
from enum import Enum
from typing import Optional
from uuid import UUID

logger = logging.getLogger("auth.audit")


class AuditEvent(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    REFRESH = "refresh"
    REVOKE = "revoke"
    PASSWORD_RESET_REQUEST = "password_reset_request"
    PASSWORD_RESET = "password_reset"
    PASSWORD_CHANGE = "password_change"
    ACCOUNT_LOCKED = "account_locked"


def log_auth_event(
    event: AuditEvent,
    success: bool,
    email: Optional[str] = None,
    user_id: Optional[UUID] = None,
    ip_address: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    """
    Log an authentication event for security auditing.

    Successful events are logged at INFO, failed ones at WARNING with the
    reason. Secrets (passwords, tokens) are never passed in.
    """
    extra = {
        "event_type": event.value,
        "user_id": str(user_id) if user_id else None,
        "email": email,
        "ip_address": ip_address,
        "success": success,
        "reason": reason,
    }

    if success:
        logger.info("Auth event: %s", event.value, extra=extra)
    else:
        logger.warning("Auth event failed: %s (%s)", event.value, reason or "unspecified", extra=extra)
