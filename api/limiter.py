"""
api/limiter.py -- Shared slowapi rate limiter instance.

api/main.py attaches it to app.state and mounts SlowAPIMiddleware;
api/routes/v1/auth.py and api/routes/v1/dashboard.py apply per-route limits
with @limiter.limit().

@limiter.limit() goes BELOW @router.get/post so FastAPI registers the
limited wrapper. SlowAPIMiddleware skips decorated routes and leaves the
check to the wrapper. Modules with limited routes must not use
`from __future__ import annotations`: FastAPI would resolve the wrapper's
string annotations against slowapi's globals.

All routes must share this one instance so they share one counter store.
A limiter created per module gets its own counters and never trips.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

LOGIN_LIMIT = _settings.login_rate_limit
REGISTER_LIMIT = _settings.register_rate_limit
