"""Fire-and-forget forwarding of client-side errors to the log sink."""

from __future__ import annotations

import asyncio
import logging
import traceback
from typing import Any, Dict, Optional, Set

import httpx

from models.session_models import utc_now

LOG_ERROR_PATH = "/api/log-error"


class ErrorReporter:
	"""Log an error locally and post it to the backend without blocking the caller.

	Reporting never raises: a failing sink is logged and otherwise ignored.
	"""

	def __init__(
		self,
		http_client: Optional[httpx.AsyncClient] = None,
		*,
		page_url: str = "",
		user_agent: str = "business-planner-client",
	) -> None:
		self.http_client = http_client
		self.page_url = page_url
		self.user_agent = user_agent
		self._pending: Set[asyncio.Task] = set()

	def report(self, operation: str, error: BaseException, details: Optional[Dict[str, Any]] = None) -> None:
		"""Queue ``error`` for delivery to the log sink."""
		logging.error("[planner] %s: %s", operation, error)
		if self.http_client is None:
			return
		payload = self.build_payload(operation, error, details)
		try:
			loop = asyncio.get_running_loop()
		except RuntimeError:
			# Outside an event loop the local log line is all we can emit.
			return
		task = loop.create_task(self._post(payload))
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)

	def build_payload(self, operation: str, error: BaseException, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
		source = getattr(error, "cause", None) or error
		stack = None
		if source.__traceback__ is not None:
			stack = "".join(traceback.format_exception(type(source), source, source.__traceback__))
		return {
			"message": str(error) or type(error).__name__,
			"stack": stack,
			"context": operation,
			"details": details or {},
			"timestamp": utc_now(),
			"url": self.page_url,
			"userAgent": self.user_agent,
		}

	async def _post(self, payload: Dict[str, Any]) -> None:
		try:
			response = await self.http_client.post(LOG_ERROR_PATH, json=payload)
		except Exception as exc:
			logging.warning("Failed to log error to service: %s", exc)
			return
		if response.status_code >= 400:
			logging.warning("Error log sink rejected report with status %s", response.status_code)

	async def drain(self) -> None:
		"""Wait for queued reports to finish."""
		if self._pending:
			await asyncio.gather(*list(self._pending), return_exceptions=True)
