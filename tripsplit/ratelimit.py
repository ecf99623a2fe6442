import os

from slowapi import Limiter
from slowapi.util import get_remote_address

EXPENSE_WRITE_LIMIT = os.getenv("RATE_LIMIT_EXPENSE_WRITE", "30/minute")

limiter = Limiter(key_func=get_remote_address)
