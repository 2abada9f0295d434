# backend/settings/dev.py
"""
PATH: backend/settings/dev.py

LOCAL DEVELOPMENT SETTINGS

- SQLite file database unless DATABASE_URL says otherwise
- Verbose supplier-ledger logging by default
- Browsable API session login allowed for manual testing
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, env

DEBUG = True

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

CORS_ALLOWED_ORIGINS = env.list(
    "CORS_ALLOWED_ORIGINS", default=["http://localhost:5173"]
)

CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS", default=["http://localhost:5173"]
)

_dev_log_level = env("DEV_LOG_LEVEL", default="DEBUG").strip().upper()
for _name in ("purchases", "products"):
    LOGGING["loggers"][_name]["level"] = _dev_log_level
