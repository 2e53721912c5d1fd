"""Session helpers (cookie-backed user identity)."""

import time
from typing import Any

from fastapi import Request


def get_session_value(request: Request, key: str, default: Any = None) -> Any:
    """
    Read a value from the session cookie payload.

    Args:
        request: FastAPI Request
        key: session key
        default: value returned when the key is missing
    """
    return request.session.get(key, default)


def clear_session(request: Request) -> None:
    """Drop every session value (logout)."""
    request.session.clear()


def is_authenticated(request: Request) -> bool:
    return get_session_value(request, "user_id") is not None


def get_current_user_id(request: Request) -> int | None:
    """Return the logged-in user id, or None."""
    return get_session_value(request, "user_id")


def login_user(request: Request, user_id: int, **kwargs: Any) -> None:
    """
    Store the authenticated user in the session.

    Args:
        request: FastAPI Request
        user_id: User.user_id
        **kwargs: extra values to keep in the session
    """
    request.session["user_id"] = user_id
    request.session["authenticated"] = True
    request.session["login_time"] = time.time()

    for key, value in kwargs.items():
        request.session[key] = value


def logout_user(request: Request) -> None:
    clear_session(request)
