"""Streamed chat turns for the business planner."""

import logging
import uuid
from typing import AsyncIterator, Optional

from fastapi import Request
from fastapi.responses import StreamingResponse

from controllers.usage_controller import ensure_can_continue
from dal.conversation_dal import ConversationDAL
from dal.session_dal import SessionDAL
from dal.usage_dal import UsageDAL
from models.session_models import SessionStatus
from services.openai.planner_chat import PlannerChatService, PlannerReplyStream
from utils.api_errors import AI_SERVICE_ERROR, INVALID_INPUT, NOT_FOUND, SESSION_ARCHIVED, api_error
from utils.validators import validate_chat_message


async def start_chat_turn(request: Request, user_id: str, session_id: Optional[str], message: Optional[str]) -> StreamingResponse:
    """Store the user message and stream the assistant reply back as plain text.

    The ids of both stored messages travel in response headers so the client
    can reconcile its optimistic copies before the body finishes. The
    assistant message and the usage counters are written once the stream
    completes.

    Raises:
        HTTPException(400) for an invalid message or missing session id.
        HTTPException(402) when the caller has no conversations left.
        HTTPException(404) if the session does not belong to the caller.
        HTTPException(503) if the model could not be reached.
    """
    settings = request.app.state.settings
    db_initializer = request.app.state.db_initializer

    errors = validate_chat_message(message)
    if errors:
        raise api_error(400, INVALID_INPUT, errors[0], {"errors": errors})
    if not session_id:
        raise api_error(400, INVALID_INPUT, "Session ID is required")
    text = message.strip()

    usage_dal = UsageDAL(db_initializer)
    usage = await usage_dal.get_or_create(user_id)
    ensure_can_continue(usage, settings)

    session_dal = SessionDAL(db_initializer)
    session = await session_dal.get_session(session_id, user_id)
    if session is None:
        raise api_error(404, NOT_FOUND, "Session not found")
    if session.status is SessionStatus.ARCHIVED:
        raise api_error(400, SESSION_ARCHIVED, "Archived sessions cannot receive new messages")

    conversations = ConversationDAL(db_initializer)
    history = await conversations.recent_history(session_id, settings.history_limit)
    user_record = await conversations.add_message(session_id, user_id, "user", text)

    service = PlannerChatService(request.app.state.openai_client, settings.openai_model, settings.max_output_tokens)
    try:
        reply = await service.start_reply(session.context, history, text)
    except Exception as exc:
        raise api_error(503, AI_SERVICE_ERROR, "AI service temporarily unavailable", {"reason": str(exc)}) from exc

    assistant_id = uuid.uuid4().hex

    async def body() -> AsyncIterator[bytes]:
        try:
            async for delta in reply.deltas():
                yield delta.encode("utf-8")
        except Exception as exc:
            logging.error("Planner reply stream failed for session %s: %s", session_id, exc)
            raise
        await _finish_turn(reply)

    async def _finish_turn(completed: PlannerReplyStream) -> None:
        await conversations.add_message(
            session_id,
            user_id,
            "assistant",
            completed.text,
            completed.tokens_used,
            message_id=assistant_id,
        )
        await usage_dal.record_conversation(user_id, completed.tokens_used, settings.paid_conversations)
        await session_dal.touch(session_id)
        logging.info("Planner turn for session %s used %s tokens", session_id, completed.tokens_used)

    headers = {
        "X-Session-Id": session_id,
        "X-User-Message-Id": user_record.id,
        "X-Assistant-Message-Id": assistant_id,
        "Cache-Control": "no-cache",
    }
    return StreamingResponse(body(), media_type="text/plain; charset=utf-8", headers=headers)
