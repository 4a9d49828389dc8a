"""FastAPI dependencies for injection."""
import httpx
from fastapi import Request

from core.auth import get_current_user
from core.config import get_settings
from db.session import get_async_session


def get_ai_http_client(request: Request) -> httpx.AsyncClient | None:
    """
    Shared client for AI provider requests, opened in the application lifespan.

    Returns None when the lifespan did not run (e.g. in-process test clients); the
    analyzer then opens a client for the single request.
    """
    return getattr(request.app.state, "ai_http_client", None)


__all__ = [
    "get_ai_http_client",
    "get_async_session",
    "get_current_user",
    "get_settings",
]
