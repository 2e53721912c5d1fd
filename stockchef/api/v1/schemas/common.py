"""Common response schemas"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every API response; ``error`` carries a domain error code on failure"""

    success: bool
    data: T | None = None
    message: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, code: str, message: str, details: dict[str, Any] | None = None) -> "ApiResponse[dict]":
        return ApiResponse[dict](success=False, data=details, message=message, error=code)
