"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware), in the API auth routes
and in the web login/register form handlers (to apply per-route limits with
@limiter.limit()).

A single shared instance means all routes share one in-memory counter store.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
