"""Rate limiting configuration for the TaskHive API."""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

_rate_limit_enabled = os.environ.get("TASKHIVE_RATE_LIMIT_ENABLED", "true").lower() != "false"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["100/minute"] if _rate_limit_enabled else [],
    enabled=_rate_limit_enabled,
)

# Fan-out is called by clients after every primary action
FANOUT_RATE_LIMIT = os.environ.get("TASKHIVE_FANOUT_RATE_LIMIT", "60/minute")
