"""Session CRUD for the business planner API."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

from fastapi import Request

from dal.conversation_dal import ConversationDAL
from dal.session_dal import SessionDAL
from models.session_models import SessionContext, SessionStatus
from utils.api_errors import INVALID_INPUT, NOT_FOUND, SESSION_LIMIT_EXCEEDED, api_error
from utils.validators import validate_onboarding_context, validate_session_title

MAX_PAGE_SIZE = 100


async def create_session(
	request: Request,
	user_id: str,
	context: Optional[Dict[str, Any]],
	title: Optional[str] = None,
) -> Dict[str, Any]:
	"""Validate the onboarding context and open a new active session."""
	settings = request.app.state.settings
	if not context:
		raise api_error(400, INVALID_INPUT, "Session context is required")

	errors, sanitized = validate_onboarding_context(context)
	if errors:
		raise api_error(400, INVALID_INPUT, "Invalid session context", {"errors": errors})

	title_errors, clean_title = validate_session_title(title)
	if title_errors:
		raise api_error(400, INVALID_INPUT, "Invalid session title", {"errors": title_errors})

	dal = SessionDAL(request.app.state.db_initializer)
	counts = await dal.count_by_status(user_id)
	if counts["total"] >= settings.max_total_sessions:
		raise api_error(
			409,
			SESSION_LIMIT_EXCEEDED,
			f"Maximum {settings.max_total_sessions} sessions allowed per user",
			{"counts": counts},
		)
	if counts[SessionStatus.ACTIVE.value] >= settings.max_active_sessions:
		raise api_error(
			409,
			SESSION_LIMIT_EXCEEDED,
			f"Maximum {settings.max_active_sessions} active sessions allowed per user",
			{"counts": counts},
		)

	session = await dal.create_session(user_id, clean_title, SessionContext.from_dict(sanitized))
	logging.info("Created planner session %s for user %s", session.id, user_id)
	return {"session": session.to_dict(), "message": "New planning session created"}


async def list_sessions(
	request: Request,
	user_id: str,
	page: int = 1,
	limit: int = 20,
	status: Optional[str] = None,
) -> Dict[str, Any]:
	"""Return one page of the caller's sessions, most recently active first."""
	if page < 1:
		raise api_error(400, INVALID_INPUT, "Page must be at least 1")
	if limit < 1 or limit > MAX_PAGE_SIZE:
		raise api_error(400, INVALID_INPUT, f"Limit must be between 1 and {MAX_PAGE_SIZE}")
	if status is not None and status not in {item.value for item in SessionStatus}:
		raise api_error(400, INVALID_INPUT, "Invalid session status")

	dal = SessionDAL(request.app.state.db_initializer)
	sessions, total = await dal.list_sessions(user_id, limit=limit, offset=(page - 1) * limit, status=status)
	total_pages = math.ceil(total / limit) if total else 0
	return {
		"data": [session.to_dict() for session in sessions],
		"count": total,
		"page": page,
		"limit": limit,
		"total_pages": total_pages,
		"has_next": page < total_pages,
		"has_prev": page > 1,
	}


async def update_session(
	request: Request,
	user_id: str,
	session_id: str,
	title: Optional[str] = None,
	status: Optional[str] = None,
) -> Dict[str, Any]:
	new_status = None
	if status is not None:
		try:
			new_status = SessionStatus(status)
		except ValueError as exc:
			raise api_error(400, INVALID_INPUT, "Invalid session status") from exc

	new_title = None
	if title is not None:
		if not title.strip():
			raise api_error(400, INVALID_INPUT, "Invalid session title", {"errors": ["Session title cannot be empty."]})
		title_errors, new_title = validate_session_title(title)
		if title_errors:
			raise api_error(400, INVALID_INPUT, "Invalid session title", {"errors": title_errors})

	if new_title is None and new_status is None:
		raise api_error(400, INVALID_INPUT, "No valid updates provided")

	dal = SessionDAL(request.app.state.db_initializer)
	session = await dal.update_session(session_id, user_id, title=new_title, status=new_status)
	if session is None:
		raise api_error(404, NOT_FOUND, "Session not found")
	return {"session": session.to_dict(), "message": "Session updated successfully"}


async def archive_session(request: Request, user_id: str, session_id: str) -> Dict[str, Any]:
	"""Archive rather than delete, so the conversation history is kept."""
	dal = SessionDAL(request.app.state.db_initializer)
	session = await dal.archive_session(session_id, user_id)
	if session is None:
		raise api_error(404, NOT_FOUND, "Session not found")
	logging.info("Archived planner session %s", session_id)
	return {"message": "Session archived successfully"}


async def list_session_messages(request: Request, user_id: str, session_id: str) -> Dict[str, Any]:
	db_initializer = request.app.state.db_initializer
	session = await SessionDAL(db_initializer).get_session(session_id, user_id)
	if session is None:
		raise api_error(404, NOT_FOUND, "Session not found")
	records = await ConversationDAL(db_initializer).list_messages(session_id, user_id)
	return {"data": [record.to_dict() for record in records], "count": len(records)}
