"""Typed error bodies returned by the planner backend."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException

INVALID_INPUT = "BP_INVALID_INPUT"
UNAUTHORIZED = "BP_UNAUTHORIZED"
NOT_FOUND = "BP_NOT_FOUND"
SESSION_ARCHIVED = "BP_SESSION_ARCHIVED"
SESSION_LIMIT_EXCEEDED = "BP_SESSION_LIMIT_EXCEEDED"
RATE_LIMIT_EXCEEDED = "BP_RATE_LIMIT_EXCEEDED"
FREE_LIMIT_EXCEEDED = "BP_FREE_LIMIT_EXCEEDED"
PAID_LIMIT_EXCEEDED = "BP_PAID_LIMIT_EXCEEDED"
AI_SERVICE_ERROR = "BP_AI_SERVICE_ERROR"
DATABASE_ERROR = "BP_DATABASE_ERROR"
INTERNAL_ERROR = "BP_INTERNAL_ERROR"

# Fallback codes for plain HTTPExceptions raised by the framework itself.
STATUS_CODES = {
    400: INVALID_INPUT,
    401: UNAUTHORIZED,
    404: NOT_FOUND,
    429: RATE_LIMIT_EXCEEDED,
}


def error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "details": details or {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def api_error(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> HTTPException:
    """Build an HTTPException whose detail is a ``{code, message}`` body."""
    return HTTPException(status_code=status_code, detail=error_body(code, message, details), headers=headers)
