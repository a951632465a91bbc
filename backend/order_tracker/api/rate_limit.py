"""
Rate limiter shared by the application and the admin routers.

Limits are keyed by client address and read from settings on each request.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from order_tracker.core.config import get_settings

limiter = Limiter(key_func=get_remote_address)


def bulk_rate_limit() -> str:
    return get_settings().bulk_rate_limit


def send_rate_limit() -> str:
    return get_settings().send_rate_limit
