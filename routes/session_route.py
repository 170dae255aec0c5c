"""FastAPI routes for business planner sessions."""

import logging
from typing import Any, Dict, Optional

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from controllers.session_controller import (
	archive_session,
	create_session,
	list_session_messages,
	list_sessions,
	update_session,
)
from utils.api_errors import DATABASE_ERROR, INTERNAL_ERROR, api_error
from utils.auth import require_user

router = APIRouter(prefix="/api/business-planner/sessions")


class CreateSessionPayload(BaseModel):
	title: Optional[str] = None
	context: Optional[Dict[str, Any]] = None


class UpdateSessionPayload(BaseModel):
	title: Optional[str] = None
	status: Optional[str] = None


def _internal_error(operation: str, exc: Exception) -> HTTPException:
	logging.error("Unexpected error in %s: %s", operation, exc)
	if isinstance(exc, aiosqlite.Error):
		return api_error(500, DATABASE_ERROR, "Database operation failed")
	return api_error(500, INTERNAL_ERROR, "Internal server error")


@router.post("", status_code=201)
async def create_session_route(request: Request, payload: CreateSessionPayload, user_id: str = Depends(require_user)):
	try:
		return await create_session(request, user_id, payload.context, payload.title)
	except HTTPException:
		raise
	except Exception as exc:
		raise _internal_error("create session", exc) from exc


@router.get("")
async def list_sessions_route(
	request: Request,
	page: int = 1,
	limit: int = 20,
	status: Optional[str] = None,
	user_id: str = Depends(require_user),
):
	try:
		return await list_sessions(request, user_id, page, limit, status)
	except HTTPException:
		raise
	except Exception as exc:
		raise _internal_error("list sessions", exc) from exc


@router.put("/{session_id}")
async def update_session_route(
	request: Request,
	session_id: str,
	payload: UpdateSessionPayload,
	user_id: str = Depends(require_user),
):
	try:
		return await update_session(request, user_id, session_id, payload.title, payload.status)
	except HTTPException:
		raise
	except Exception as exc:
		raise _internal_error("update session", exc) from exc


@router.delete("/{session_id}")
async def archive_session_route(request: Request, session_id: str, user_id: str = Depends(require_user)):
	try:
		return await archive_session(request, user_id, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise _internal_error("archive session", exc) from exc


@router.get("/{session_id}/messages")
async def list_messages_route(request: Request, session_id: str, user_id: str = Depends(require_user)):
	try:
		return await list_session_messages(request, user_id, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise _internal_error("list messages", exc) from exc
