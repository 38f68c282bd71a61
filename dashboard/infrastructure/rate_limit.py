from slowapi import Limiter
from slowapi.util import get_remote_address
from ..config import settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)

REGISTER_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
# stricter for login, brute-force protection
LOGIN_LIMIT = "10/minute"
