"""Caller identity for planner routes."""

from typing import Optional

from fastapi import Header

from utils.api_errors import UNAUTHORIZED, api_error


def require_user(authorization: Optional[str] = Header(None)) -> str:
    """Return the caller id carried as an opaque bearer token.

    Identity is issued by the surrounding application; the planner only needs
    a stable owner key, so the token itself is used as the user id.
    """
    if not authorization:
        raise api_error(401, UNAUTHORIZED, "Authentication required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise api_error(401, UNAUTHORIZED, "Authentication required")
    return token.strip()
