import logging
import math
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

# .env before settings are read
load_dotenv()

from stockchef.api.v1.router import api_router
from stockchef.api.v1.schemas.common import ApiResponse
from stockchef.core.config import get_settings
from stockchef.core.errors import RateLimitedError, StockChefError
from stockchef.db.session import init_models

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Root logging for the app; SQLAlchemy engine logs get extra spacing."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    sql_logger = logging.getLogger("sqlalchemy.engine")
    sql_logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s\n%(message)s\n",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    sql_logger.addHandler(handler)
    sql_logger.propagate = False


settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if settings.app_env == "local":
        await init_models()
    yield


app = FastAPI(
    title="StockChef API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS before SessionMiddleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret_key,
    session_cookie=settings.session_cookie_name,
    max_age=settings.session_max_age,
    same_site=settings.session_same_site,
    https_only=settings.session_https_only,
)


@app.exception_handler(StockChefError)
async def stockchef_error_handler(request: Request, exc: StockChefError) -> JSONResponse:
    """Render domain errors in the ApiResponse envelope."""
    if exc.status_code >= 500:
        logger.error("%s on %s: %s %s", exc.code, request.url.path, exc.message, exc.details)
    body = ApiResponse.failure(exc.code, exc.message, exc.to_dict())
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(max(1, math.ceil(exc.retry_after)))}
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"), headers=headers)


api_prefix = f"{settings.api_prefix}/{settings.api_version}".rstrip("/")
app.include_router(api_router, prefix=api_prefix)


@app.get("/healthz", tags=["health"])
async def root_health_check() -> dict[str, str]:
    """Basic readiness probe for infrastructure monitors."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stockchef.main:app",
        host="127.0.0.1",
        port=settings.port,
        reload=True,
        reload_dirs=["stockchef"],
    )
