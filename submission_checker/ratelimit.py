"""Shared slowapi limiter, attached to the app in ``app.py``."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Uploads and runs: 30 requests/minute per client
# Read-only endpoints: 100 requests/minute per client
UPLOAD_LIMIT = "30/minute"
RUN_LIMIT = "30/minute"
READ_LIMIT = "100/minute"

limiter = Limiter(key_func=get_remote_address)
