"""
api/limiter.py -- The one slowapi Limiter for ReadShelf.

Rate-limited routes:
  POST /api/v1/auth/login      -- Settings.login_rate_limit (default 10/minute)
  POST /api/v1/auth/register   -- Settings.register_rate_limit (default 5/minute)
  POST /api/v1/documents       -- 30/minute

Keys are the client IP. Counters live in process memory, so limits are per
worker; a multi-worker deployment needs a shared storage_uri (e.g. redis://).
Tests switch the limiter off with `limiter.enabled = False`.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
