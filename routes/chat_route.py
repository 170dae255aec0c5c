import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.chat_controller import start_chat_turn
from controllers.usage_controller import get_usage
from utils.api_errors import INTERNAL_ERROR, api_error
from utils.auth import require_user
from utils.rate_limits import chat_limit, limiter, user_or_address

router = APIRouter(prefix="/api/business-planner")


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: Optional[str] = None


@router.post("/chat")
@limiter.limit(chat_limit, key_func=user_or_address)
async def post_chat(request: Request, payload: ChatRequest, user_id: str = Depends(require_user)):
    """Send one message and stream the assistant reply as plain text."""
    try:
        return await start_chat_turn(request, user_id, payload.session_id, payload.message)
    except HTTPException:
        raise
    except Exception as exc:
        logging.error("Unexpected error in chat turn: %s", exc)
        raise api_error(500, INTERNAL_ERROR, "Internal server error") from exc


@router.get("/usage")
async def get_usage_route(request: Request, user_id: str = Depends(require_user)):
    try:
        return await get_usage(request, user_id)
    except HTTPException:
        raise
    except Exception as exc:
        logging.error("Unexpected error reading usage: %s", exc)
        raise api_error(500, INTERNAL_ERROR, "Internal server error") from exc
