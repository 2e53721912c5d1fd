"""Services package - business logic."""
# noqa: D104

from . import auth_service
from . import consulta_service
from . import stock_cooking_service
from . import stock_service

__all__ = [
    "auth_service",
    "consulta_service",
    "stock_cooking_service",
    "stock_service",
]
