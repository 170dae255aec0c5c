"""HTTP client for the business planner backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from models.planner_errors import ApiResponseError
from models.session_models import Message, Session, SessionContext, SessionStatus

SESSIONS_PATH = "/api/business-planner/sessions"
CHAT_PATH = "/api/business-planner/chat"
USAGE_PATH = "/api/business-planner/usage"


@dataclass
class TurnResponse:
	"""An accepted chat turn whose reply body is still streaming."""

	session_id: Optional[str]
	user_message_id: Optional[str]
	assistant_message_id: Optional[str]
	chunks: AsyncIterator[bytes]


@dataclass
class SessionPage:
	sessions: List[Session]
	count: int
	page: int
	limit: int
	total_pages: int
	has_next: bool
	has_prev: bool


def error_payload(response: httpx.Response) -> Dict[str, Any]:
	"""Decode a ``{code, message}`` error body, tolerating non-JSON replies."""
	try:
		body = response.json()
	except ValueError:
		return {"message": response.text or response.reason_phrase}
	if not isinstance(body, dict):
		return {"message": str(body)}
	nested = body.get("error") or body.get("detail")
	if isinstance(nested, dict):
		return nested
	if isinstance(nested, str) and "message" not in body:
		return {"message": nested}
	return body


class PlannerApiClient:
	"""Thin wrapper over the planner endpoints.

	Every non-2xx reply raises :class:`ApiResponseError`; transport failures
	propagate as httpx exceptions so the caller can classify them.
	"""

	def __init__(self, http_client: httpx.AsyncClient, credential: Optional[str] = None) -> None:
		self.http = http_client
		self.credential = credential

	def _headers(self) -> Dict[str, str]:
		if not self.credential:
			return {}
		return {"Authorization": f"Bearer {self.credential}"}

	async def _json(self, response: httpx.Response) -> Dict[str, Any]:
		if not response.is_success:
			raise ApiResponseError(response.status_code, error_payload(response))
		return response.json()

	async def create_session(self, context: SessionContext, title: Optional[str] = None) -> Session:
		body: Dict[str, Any] = {"context": context.to_dict()}
		if title:
			body["title"] = title
		response = await self.http.post(SESSIONS_PATH, json=body, headers=self._headers())
		payload = await self._json(response)
		return Session.from_dict(payload["session"])

	async def list_sessions(self, page: int = 1, limit: int = 20, status: Optional[str] = None) -> SessionPage:
		params: Dict[str, Any] = {"page": page, "limit": limit}
		if status:
			params["status"] = status
		response = await self.http.get(SESSIONS_PATH, params=params, headers=self._headers())
		payload = await self._json(response)
		return SessionPage(
			sessions=[Session.from_dict(item) for item in payload.get("data", [])],
			count=payload.get("count", 0),
			page=payload.get("page", page),
			limit=payload.get("limit", limit),
			total_pages=payload.get("total_pages", 0),
			has_next=payload.get("has_next", False),
			has_prev=payload.get("has_prev", False),
		)

	async def update_session(
		self,
		session_id: str,
		*,
		title: Optional[str] = None,
		status: Optional[SessionStatus] = None,
	) -> Session:
		body: Dict[str, Any] = {}
		if title is not None:
			body["title"] = title
		if status is not None:
			body["status"] = status.value
		response = await self.http.put(f"{SESSIONS_PATH}/{session_id}", json=body, headers=self._headers())
		payload = await self._json(response)
		return Session.from_dict(payload["session"])

	async def archive_session(self, session_id: str) -> None:
		response = await self.http.delete(f"{SESSIONS_PATH}/{session_id}", headers=self._headers())
		await self._json(response)

	async def list_messages(self, session_id: str) -> List[Message]:
		response = await self.http.get(f"{SESSIONS_PATH}/{session_id}/messages", headers=self._headers())
		payload = await self._json(response)
		return [Message.from_record(item) for item in payload.get("data", [])]

	async def get_usage(self) -> Dict[str, Any]:
		response = await self.http.get(USAGE_PATH, headers=self._headers())
		return await self._json(response)

	@asynccontextmanager
	async def open_turn(self, session_id: str, message: str) -> AsyncIterator[TurnResponse]:
		"""Post a chat turn and yield the streaming reply.

		The response is closed when the block exits, including when the
		surrounding task is cancelled mid-stream.
		"""
		request = self.http.build_request(
			"POST",
			CHAT_PATH,
			json={"sessionId": session_id, "message": message},
			headers=self._headers(),
		)
		response = await self.http.send(request, stream=True)
		try:
			if not response.is_success:
				await response.aread()
				raise ApiResponseError(response.status_code, error_payload(response))
			yield TurnResponse(
				session_id=response.headers.get("X-Session-Id"),
				user_message_id=response.headers.get("X-User-Message-Id"),
				assistant_message_id=response.headers.get("X-Assistant-Message-Id"),
				chunks=response.aiter_bytes(),
			)
		finally:
			await response.aclose()
