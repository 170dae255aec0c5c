"""Request rate limits for the planner API, enforced with slowapi."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from utils.settings import BackendSettings

limiter = Limiter(key_func=get_remote_address)


def user_or_address(request: Request) -> str:
    """Key chat requests by caller id, falling back to the client address."""
    authorization = request.headers.get("authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return f"user:{token.strip()}"
    return get_remote_address(request)


def chat_limit() -> str:
    settings = BackendSettings.from_env()
    return f"{settings.rate_limit_requests} per {int(settings.rate_limit_window_seconds)} seconds"


def error_log_limit() -> str:
    settings = BackendSettings.from_env()
    return f"{settings.error_log_requests} per {int(settings.error_log_window_seconds)} seconds"
