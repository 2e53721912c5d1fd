"""Domain errors raised by the service layer.

Each error carries a stable ``code`` for API clients plus the identifiers a
caller needs to decide between retrying and giving up. The FastAPI handler in
``stockchef.main`` turns them into the ``ApiResponse`` envelope.
"""
from typing import Any


class StockChefError(Exception):
    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "retryable": self.retryable, **self.details}


class RateLimitedError(StockChefError):
    code = "RATE_LIMITED"
    status_code = 429
    retryable = True

    def __init__(self, scope: str, retry_after: float) -> None:
        super().__init__(
            f"Too many requests for {scope}. Retry in {retry_after:.0f}s.",
            scope=scope,
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class NoStockError(StockChefError):
    code = "NO_STOCK"
    status_code = 422

    def __init__(self, user_id: int) -> None:
        super().__init__("No usable ingredients in stock.", user_id=user_id)


class GenerationExhaustedError(StockChefError):
    """Neither the AI path nor the fallback produced a recipe."""

    code = "GENERATION_EXHAUSTED"
    status_code = 500

    def __init__(self, user_id: int, attempts: int) -> None:
        super().__init__("Recipe generation produced no valid recipe.", user_id=user_id, attempts=attempts)


class InsufficientStockError(StockChefError):
    code = "INSUFFICIENT_STOCK"
    status_code = 422

    def __init__(self, shortages: list[dict[str, Any]]) -> None:
        names = ", ".join(item["ingredient"] for item in shortages)
        super().__init__(f"Not enough stock for: {names}", shortages=shortages)
        self.shortages = shortages


class ConflictError(StockChefError):
    """A concurrent writer changed the stock between read and write."""

    code = "CONFLICT"
    status_code = 409
    retryable = True

    def __init__(self, ingredient_ids: list[int]) -> None:
        super().__init__("Stock was modified concurrently. Reload and retry.", ingredient_ids=ingredient_ids)
        self.ingredient_ids = ingredient_ids


class NotFoundError(StockChefError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(f"{resource} not found.", resource=resource, id=identifier)
