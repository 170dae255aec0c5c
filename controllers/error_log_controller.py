"""Sink for error reports posted by planner clients."""

import json
import logging
import os
from typing import Any, Dict

from fastapi import Request

from models.session_models import utc_now
from utils.api_errors import INVALID_INPUT, api_error

MAX_REPORT_BYTES = 50_000
REQUIRED_FIELDS = ("message", "timestamp")

LOGGER = logging.getLogger("planner.client_errors")


async def log_client_error(request: Request) -> Dict[str, Any]:
    """Validate a client error report and write it to the server log."""
    raw = await request.body()
    if len(raw) > MAX_REPORT_BYTES:
        raise api_error(400, INVALID_INPUT, "Error log too large")
    if not raw.strip():
        raise api_error(400, INVALID_INPUT, "Empty request body")
    try:
        report = json.loads(raw)
    except ValueError as exc:
        raise api_error(400, INVALID_INPUT, "Invalid JSON format") from exc
    if not isinstance(report, dict):
        raise api_error(400, INVALID_INPUT, "Missing error data")
    for field in REQUIRED_FIELDS:
        if not report.get(field):
            raise api_error(400, INVALID_INPUT, f"Missing required field: {field}")

    client_ip = (
        request.headers.get("x-forwarded-for")
        or request.headers.get("x-real-ip")
        or (request.client.host if request.client else "unknown")
    )
    enriched = {
        **report,
        "serverTimestamp": utc_now(),
        "clientIp": client_ip,
        "headers": {
            "userAgent": request.headers.get("user-agent"),
            "referer": request.headers.get("referer"),
            "acceptLanguage": request.headers.get("accept-language"),
        },
        "environment": os.getenv("ENVIRONMENT", "development"),
    }
    LOGGER.error("Client Error Report: %s", json.dumps(enriched, default=str))
    return {"success": True, "message": "Error logged successfully"}
