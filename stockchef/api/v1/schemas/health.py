from pydantic import BaseModel


class HealthStatus(BaseModel):
    """Liveness payload."""

    status: str = "ok"
    environment: str | None = None
    rate_limit_store: str | None = None
