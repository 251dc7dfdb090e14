import os
from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by every router so one app.state.limiter covers all decorated routes
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
