"""
api/limiter.py -- Shared slowapi rate limiter and the per-route budgets.

Routes apply limits with @limiter.limit(); api/main.py mounts SlowAPIMiddleware
and registers the instance on app.state. Counters live in RATE_LIMIT_STORAGE
("memory://" per process by default; point it at redis:// when running
several workers so they share one budget).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

# POST /api/auth/{login,register,forgot-password,reset-password}, per client IP.
LOGIN_LIMIT = _settings.login_rate_limit
# POST /api/items
ITEM_WRITE_LIMIT = "30/minute"

limiter = Limiter(key_func=get_remote_address, storage_uri=_settings.rate_limit_storage)
