"""Validation helpers shared by the planner client and the FastAPI backend."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

REQUIRED_CONTEXT_FIELDS = (
    ("business_type", "Business type is required."),
    ("target_market", "Target market is required."),
    ("challenge", "Business challenge is required."),
)

MAX_CHALLENGE_LENGTH = 1000
MAX_ADDITIONAL_CONTEXT_LENGTH = 1000
MAX_FIELD_LENGTH = 255
MAX_SESSION_TITLE_LENGTH = 255
MIN_MESSAGE_LENGTH = 5
MAX_MESSAGE_LENGTH = 2000
DEFAULT_SESSION_TITLE = "Business Planning Session"


def _field(context: Any, name: str) -> Any:
    if isinstance(context, Mapping):
        return context.get(name)
    return getattr(context, name, None)


def validate_session_context(context: Any) -> List[str]:
    """Return the error list for the three required context fields.

    Accepts a mapping or any object exposing the fields as attributes
    (``SessionContext``). An empty list means the context is valid.
    """
    if context is None:
        return [message for _, message in REQUIRED_CONTEXT_FIELDS]
    errors = []
    for name, message in REQUIRED_CONTEXT_FIELDS:
        value = _field(context, name)
        if not isinstance(value, str) or not value.strip():
            errors.append(message)
    return errors


def validate_onboarding_context(context: Any) -> Tuple[List[str], Dict[str, Any]]:
    """Validate and sanitize a session context received by the backend.

    Returns:
        A tuple of ``(errors, sanitized)`` where ``sanitized`` holds stripped
        values ready to persist.
    """
    errors = validate_session_context(context)
    if errors:
        return errors, {}

    sanitized: Dict[str, Any] = {
        "business_type": _field(context, "business_type").strip(),
        "target_market": _field(context, "target_market").strip(),
        "challenge": _field(context, "challenge").strip(),
    }
    if len(sanitized["business_type"]) > MAX_FIELD_LENGTH:
        errors.append(f"Business type must be at most {MAX_FIELD_LENGTH} characters.")
    if len(sanitized["target_market"]) > MAX_FIELD_LENGTH:
        errors.append(f"Target market must be at most {MAX_FIELD_LENGTH} characters.")
    if len(sanitized["challenge"]) > MAX_CHALLENGE_LENGTH:
        errors.append(f"Challenge must be at most {MAX_CHALLENGE_LENGTH} characters.")

    additional = _field(context, "additional_context")
    if additional is not None:
        if not isinstance(additional, str):
            errors.append("Additional context must be a string.")
        elif len(additional.strip()) > MAX_ADDITIONAL_CONTEXT_LENGTH:
            errors.append(f"Additional context must be at most {MAX_ADDITIONAL_CONTEXT_LENGTH} characters.")
        elif additional.strip():
            sanitized["additional_context"] = additional.strip()

    created_at = _field(context, "created_at")
    if isinstance(created_at, str) and created_at.strip():
        sanitized["created_at"] = created_at.strip()

    return errors, (sanitized if not errors else {})


def validate_session_title(title: Optional[str]) -> Tuple[List[str], str]:
    """Return ``(errors, title)``, falling back to the default title when blank."""
    if title is None or not title.strip():
        return [], DEFAULT_SESSION_TITLE
    cleaned = " ".join(title.split())
    if len(cleaned) > MAX_SESSION_TITLE_LENGTH:
        return [f"Session title must be at most {MAX_SESSION_TITLE_LENGTH} characters."], cleaned
    return [], cleaned


def validate_chat_message(message: Optional[str]) -> List[str]:
    if message is None or not message.strip():
        return ["Message is required."]
    length = len(message.strip())
    if length < MIN_MESSAGE_LENGTH:
        return [f"Message must be at least {MIN_MESSAGE_LENGTH} characters."]
    if length > MAX_MESSAGE_LENGTH:
        return [f"Message must be at most {MAX_MESSAGE_LENGTH} characters."]
    return []
