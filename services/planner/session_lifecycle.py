"""Create, select, rename and archive planning sessions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from models.planner_errors import (
	ContextValidationError,
	ErrorKind,
	ErrorState,
	PlannerError,
	SessionCreationRetryInfo,
	SessionCreationStatus,
)
from models.session_models import Session, SessionContext, utc_now
from services.planner.conversation_store import ConversationStore, LoadingState
from services.planner.error_classifier import ErrorClassifier
from services.planner.planner_api import PlannerApiClient
from services.planner.retry_policy import RetryPolicy
from services.planner.turn_executor import AI_TIMEOUT_SECONDS, Sleep, TurnExecutor
from utils.validators import validate_session_context

DEFAULT_SESSION_TITLE = "New Business Plan"
MAX_RETRIES_MESSAGE = "Max retries reached for session creation."


@dataclass(frozen=True)
class _CreateRequest:
	context: SessionContext
	first_message: str
	title: str
	auto_retry: bool


class SessionLifecycleManager:
	"""Owns session creation and the CRUD actions on the session list.

	A successful creation hands the first message to the turn executor, so
	creating a session and delivering its opening question is one operation
	for the caller.
	"""

	def __init__(
		self,
		store: ConversationStore,
		api: PlannerApiClient,
		classifier: ErrorClassifier,
		turns: TurnExecutor,
		*,
		policy: Optional[RetryPolicy] = None,
		timeout: float = AI_TIMEOUT_SECONDS,
		sleep: Sleep = asyncio.sleep,
	) -> None:
		self.store = store
		self.api = api
		self.classifier = classifier
		self.turns = turns
		self.policy = policy or RetryPolicy.for_session_creation()
		self.timeout = timeout
		self.sleep = sleep
		self._last_request: Optional[_CreateRequest] = None

	async def create_session(
		self,
		context: SessionContext,
		first_message: str = "",
		retry_count: int = 0,
		*,
		title: str = DEFAULT_SESSION_TITLE,
		auto_retry: bool = True,
	) -> Optional[Session]:
		"""Create a session and send ``first_message`` to it.

		Transient failures are retried with a growing delay unless
		``auto_retry`` is off, in which case the first failure waits for
		:meth:`retry_create_session`. Returns the new session, or None when
		creation ended in ``FAILED``.
		"""
		self._last_request = _CreateRequest(context, first_message, title, auto_retry)
		self.store.update(
			loading=LoadingState(True, "Creating new session..."),
			error=ErrorState(),
			session_creation_status=SessionCreationStatus.IN_PROGRESS,
			session_creation_retry_info=SessionCreationRetryInfo(
				retry_count=retry_count,
				max_retries=self.policy.max_retries,
			),
		)

		errors = validate_session_context(context)
		if errors:
			error = self.classifier.classify(ContextValidationError(errors), "createSession")
			self._record_failure(error)
			return None

		attempt = retry_count
		while True:
			try:
				session = await asyncio.wait_for(self.api.create_session(context, title), self.timeout)
				break
			except asyncio.TimeoutError as exc:
				timeout_error = PlannerError(ErrorKind.TIMEOUT, "Session creation timed out.", cause=exc)
				error = self.classifier.classify(timeout_error, "createSession")
			except Exception as exc:
				error = self.classifier.classify(exc, "createSession")

			self._record_failure(error)
			if not auto_retry or not self.policy.should_retry(attempt, error.is_transient):
				return None
			attempt += 1
			info = self.store.state.session_creation_retry_info
			self.store.update(
				session_creation_status=SessionCreationStatus.RETRIED,
				session_creation_retry_info=SessionCreationRetryInfo(
					retry_count=attempt,
					max_retries=info.max_retries,
					last_error=info.last_error,
					last_attempt_at=info.last_attempt_at,
				),
			)
			logging.warning("Retrying session creation after %s (retry %s)", error.kind.value, attempt)
			await self.sleep(self.policy.backoff_delay(attempt))

		self.store.add_session(session)
		self.store.clear_messages()
		self.store.update(
			current_session=session,
			loading=LoadingState(),
			session_creation_status=SessionCreationStatus.SUCCESS,
			session_creation_retry_info=SessionCreationRetryInfo(max_retries=self.policy.max_retries),
		)
		logging.info("Created planning session %s", session.id)
		if first_message.strip():
			await self.turns.send(first_message, session.id)
		return session

	async def retry_create_session(self) -> Optional[Session]:
		"""Re-issue the last failed creation when its error allows it."""
		info = self.store.state.session_creation_retry_info
		request = self._last_request
		if request is not None and info.retry_available and info.retry_count < info.max_retries:
			return await self.create_session(
				request.context,
				request.first_message,
				info.retry_count + 1,
				title=request.title,
				auto_retry=request.auto_retry,
			)

		last_error = info.last_error
		if last_error is not None and not last_error.is_transient:
			message = last_error.message
		else:
			message = MAX_RETRIES_MESSAGE
		self.store.update(
			session_creation_status=SessionCreationStatus.FAILED,
			error=ErrorState(
				has_error=True,
				error=last_error,
				message=message,
				is_timeout=last_error.is_timeout if last_error is not None else False,
			),
		)
		return None

	async def fetch_sessions(self, page: int = 1, limit: int = 20, status: Optional[str] = None) -> None:
		self.store.set_loading(True, "Loading sessions...")
		try:
			result = await self.api.list_sessions(page=page, limit=limit, status=status)
		except Exception as exc:
			error = self.classifier.classify(exc, "fetchSessions")
			self.store.set_error(ErrorState.from_error(error, "Failed to load sessions."))
			self.store.set_loading(False)
			return
		self.store.replace_sessions(result.sessions)
		self.store.set_loading(False)

	async def fetch_messages(self, session_id: str) -> None:
		self.store.set_loading(True, "Loading messages...")
		try:
			messages = await self.api.list_messages(session_id)
		except Exception as exc:
			error = self.classifier.classify(exc, "fetchMessages")
			self.store.set_error(ErrorState.from_error(error, "Failed to load messages."))
			self.store.set_loading(False)
			return
		self.store.replace_messages(messages)
		self.store.set_loading(False)

	async def select_session(self, session_id: str) -> Optional[Session]:
		session = next((item for item in self.store.state.sessions if item.id == session_id), None)
		if session is None:
			return None
		self.store.set_active_session(session)
		self.store.clear_messages()
		await self.fetch_messages(session_id)
		return session

	async def delete_session(self, session_id: str) -> bool:
		"""Archive the session on the backend and drop it from the local list."""
		self.store.clear_error()
		self.store.set_loading(True, "Deleting session...")
		try:
			await self.api.archive_session(session_id)
		except Exception as exc:
			error = self.classifier.classify(exc, "deleteSession")
			self.store.set_error(ErrorState.from_error(error, "Failed to delete session."))
			self.store.set_loading(False)
			return False
		self.store.remove_session(session_id)
		self.store.set_loading(False)
		return True

	async def update_session_title(self, session_id: str, title: str) -> Optional[Session]:
		self.store.clear_error()
		self.store.set_loading(True, "Updating session title...")
		try:
			session = await self.api.update_session(session_id, title=title)
		except Exception as exc:
			error = self.classifier.classify(exc, "updateSessionTitle")
			self.store.set_error(ErrorState.from_error(error, "Failed to update session title."))
			self.store.set_loading(False)
			return None
		self.store.patch_session(session)
		self.store.set_loading(False)
		return session

	def clear_chat(self) -> None:
		self.store.set_active_session(None)
		self.store.clear_messages()

	def _record_failure(self, error: PlannerError) -> None:
		info = self.store.state.session_creation_retry_info
		self.store.update(
			error=ErrorState.from_error(error),
			loading=LoadingState(),
			session_creation_status=SessionCreationStatus.FAILED,
			session_creation_retry_info=SessionCreationRetryInfo(
				retry_count=info.retry_count,
				max_retries=info.max_retries,
				last_error=error,
				last_attempt_at=utc_now(),
			),
		)
