"""API dependencies"""
from collections.abc import Iterable

from fastapi import Depends, HTTPException, Request

from stockchef.core.config import get_settings
from stockchef.core.errors import RateLimitedError
from stockchef.services.rate_limiter import RateLimiter, auth_policy, auth_scope, get_rate_limiter
from stockchef.utils.session import get_current_user_id, is_authenticated


async def require_authentication(request: Request) -> int:
    """
    Authentication dependency: returns the logged-in user id.

    Usage:
        @router.get("/protected")
        async def protected_route(user_id: int = Depends(require_authentication)):
            ...
    """
    if not is_authenticated(request):
        raise HTTPException(status_code=401, detail="Authentication required. Please log in.")

    user_id = get_current_user_id(request)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid session.")

    return user_id


def client_ip(request: Request, trusted_proxies: Iterable[str] | None = None) -> str:
    """
    Address used to key per-client limits.

    The socket peer, unless that peer is a trusted proxy (``TRUSTED_PROXIES``);
    only then is the first X-Forwarded-For hop used.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = get_settings().trusted_proxies if trusted_proxies is None else trusted_proxies
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and peer in trusted:
        hop = forwarded.split(",")[0].strip()
        if hop:
            return hop
    return peer


def auth_rate_limit(route: str):
    """
    Dependency factory throttling an auth route per client IP.

    Usage:
        @router.post("/login", dependencies=[Depends(auth_rate_limit("login"))])
    """
    scope = auth_scope(route)

    async def _guard(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        admission = await limiter.admit_policy(auth_policy(), scope, client_ip(request))
        if not admission.allowed:
            raise RateLimitedError(scope, admission.retry_after)

    return _guard
