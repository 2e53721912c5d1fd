from fastapi import APIRouter, Depends

from stockchef.api.v1.schemas.health import HealthStatus
from stockchef.core.config import get_settings
from stockchef.services.rate_limiter import InMemoryWindowStore, RateLimiter, get_rate_limiter

router = APIRouter()


@router.get("", response_model=HealthStatus, response_model_exclude_none=True, summary="API health check")
async def health_check(limiter: RateLimiter = Depends(get_rate_limiter)) -> HealthStatus:
    """Report liveness plus which store backs the rate-limit windows."""
    store = "memory" if isinstance(limiter.store, InMemoryWindowStore) else "redis"
    return HealthStatus(status="ok", environment=get_settings().app_env, rate_limit_store=store)
