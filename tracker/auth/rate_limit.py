"""
Rate Limiting Utilities
Per-address rate limits for authentication endpoints.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from tracker.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
