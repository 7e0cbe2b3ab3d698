"""Rate limiting singleton using slowapi.

Limits are counted per authenticated user when get_current_user has already
run for the request, and per client IP otherwise (auth endpoints).
"""

from fastapi import Request
from slowapi import Limiter


def client_ip(request: Request) -> str:
    """Socket peer address.

    ProxyHeadersMiddleware rewrites it from X-Forwarded-For only for peers
    listed in FORWARDED_ALLOW_IPS, so the raw header is never read here.
    """
    return request.client.host if request.client else ""


def rate_limit_key(request: Request) -> str:
    user_id = getattr(request.state, "user_id", None)
    if user_id is not None:
        return f"user:{user_id}"
    return f"ip:{client_ip(request) or 'unknown'}"


limiter = Limiter(key_func=rate_limit_key)
