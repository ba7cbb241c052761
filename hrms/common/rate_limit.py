"""Rate limiting configuration using slowapi.

The module-level Limiter is wired into the app in main.py; check-in and
check-out carry a tighter per-route limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# 60 requests/minute per client IP unless a route says otherwise.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["60/minute"],
)

ATTENDANCE_PUNCH_LIMIT = "10/minute"
