"""Helpers to parse Responses API outputs."""

from typing import Any, Dict, Optional


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    input_tokens = getattr(usage, "input_tokens", None) if usage else None
    output_tokens = getattr(usage, "output_tokens", None) if usage else None
    total_tokens = getattr(usage, "total_tokens", None) if usage else None
    if total_tokens is None and (input_tokens is not None or output_tokens is not None):
        total_tokens = (input_tokens or 0) + (output_tokens or 0)
    return {
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": total_tokens,
    }


def extract_error_message(event: Any) -> str:
    """Best-effort message from a ``response.failed`` or ``error`` stream event."""
    message = getattr(event, "message", None)
    if message:
        return message
    response = getattr(event, "response", None)
    error = getattr(response, "error", None) if response is not None else None
    return getattr(error, "message", None) or "The model stream failed."
