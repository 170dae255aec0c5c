import logging

from fastapi import APIRouter, HTTPException, Request

from controllers.error_log_controller import log_client_error
from utils.api_errors import INTERNAL_ERROR, api_error
from utils.rate_limits import error_log_limit, limiter

router = APIRouter()


@router.post("/api/log-error")
@limiter.limit(error_log_limit)
async def post_log_error(request: Request):
    """Accept a client-side error report."""
    try:
        return await log_client_error(request)
    except HTTPException:
        raise
    except Exception as exc:
        logging.error("Error logging failed: %s", exc)
        raise api_error(500, INTERNAL_ERROR, "Failed to log error") from exc
