"""Drive one conversational turn: optimistic writes, streaming, retry and cancel."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from models.planner_errors import ErrorState, PlannerError, TurnCancelledError, TurnInProgressError
from models.session_models import Message, MessageStatus, PendingRef, TurnStatus
from services.planner.conversation_store import ConversationStore, LoadingState
from services.planner.error_classifier import ErrorClassifier
from services.planner.planner_api import PlannerApiClient
from services.planner.retry_policy import RetryPolicy
from services.planner.stream_reader import MessageStreamReader

AI_TIMEOUT_SECONDS = 30.0

Sleep = Callable[[float], Awaitable[None]]


def new_temp_id() -> str:
	return f"temp-{uuid.uuid4().hex}"


@dataclass
class _Turn:
	session_id: str
	text: str
	user_temp_id: str
	assistant_temp_id: str
	first_attempt_number: int


class TurnExecutor:
	"""Send a user message and stream the assistant reply into the store.

	Every attempt is bounded by ``timeout`` seconds covering the request and
	the whole reply stream. Transient failures are retried with the policy's
	backoff; anything else, or an exhausted budget, leaves both messages
	``failed`` until :meth:`resend` is called.
	"""

	def __init__(
		self,
		store: ConversationStore,
		api: PlannerApiClient,
		classifier: ErrorClassifier,
		*,
		policy: Optional[RetryPolicy] = None,
		reader: Optional[MessageStreamReader] = None,
		timeout: float = AI_TIMEOUT_SECONDS,
		sleep: Sleep = asyncio.sleep,
		id_factory: Callable[[], str] = new_temp_id,
	) -> None:
		self.store = store
		self.api = api
		self.classifier = classifier
		self.policy = policy or RetryPolicy.for_messages()
		self.reader = reader or MessageStreamReader()
		self.timeout = timeout
		self.sleep = sleep
		self.id_factory = id_factory
		self._running = False
		self._inflight: Optional[asyncio.Future] = None
		self._cancel_requested = False

	@property
	def in_flight(self) -> bool:
		return self._running

	async def send(self, message: str, session_id: Optional[str] = None, attempt: int = 0) -> Optional[Message]:
		"""Start a new turn and return the assistant message once it settles."""
		if self._running:
			raise TurnInProgressError("A message is already being sent for this conversation.")
		if session_id is None:
			current = self.store.state.current_session
			if current is None:
				raise ValueError("No active planning session to send the message to.")
			session_id = current.id

		user = Message(
			ref=PendingRef(self.id_factory()),
			session_id=session_id,
			role="user",
			content=message,
			status=MessageStatus.PENDING,
			retry_count=attempt,
			attempt_number=attempt + 1,
			max_retries=self.policy.max_retries,
		)
		assistant = self._placeholder(session_id, user.temp_id)
		self.store.append_message(user)
		self.store.append_message(assistant)

		turn = _Turn(session_id, message, user.temp_id, assistant.temp_id, first_attempt_number=1)
		return await self._execute(turn, attempt)

	async def resend(self, temp_id: str) -> Optional[Message]:
		"""Resubmit the failed user message ``temp_id`` as a fresh attempt.

		The message keeps its client id and its attempt number grows by one.
		A manual resend gets a full automatic retry budget of its own.
		"""
		if self._running:
			raise TurnInProgressError("A message is already being sent for this conversation.")
		state = self.store.state
		message = state.find_message(temp_id)
		if message is None or message.role != "user":
			raise ValueError(f"No user message with id {temp_id}")
		if message.status is not MessageStatus.FAILED:
			raise ValueError("Only failed messages can be retried.")

		reply = state.reply_for(temp_id)
		if reply is None:
			reply = self._placeholder(message.session_id, temp_id)
			self.store.append_message(reply)

		turn = _Turn(
			message.session_id,
			message.content,
			temp_id,
			reply.temp_id,
			first_attempt_number=message.attempt_number + 1,
		)
		return await self._execute(turn, 0)

	def cancel(self) -> bool:
		"""Stop waiting for the AI reply.

		Loading and typing flags clear right away and the AI error becomes a
		non-retryable cancellation, even when no turn is running. Returns True
		when a running turn will stop. A call made while an attempt is being
		set up, before its request starts (from a store listener, say), is
		held and stops the turn before that request is sent.
		"""
		self.store.set_typing(False)
		self.store.set_loading(False)
		self.store.set_ai_loading(False)
		self.store.set_ai_error(ErrorState.cancelled())
		if not self._running or (self._inflight is not None and self._inflight.done()):
			return False
		self._cancel_requested = True
		if self._inflight is not None:
			self._inflight.cancel()
		return True

	def _placeholder(self, session_id: str, reply_to: str) -> Message:
		return Message(
			ref=PendingRef(self.id_factory()),
			session_id=session_id,
			role="assistant",
			content="",
			status=MessageStatus.STREAMING,
			max_retries=self.policy.max_retries,
			reply_to=reply_to,
		)

	async def _execute(self, turn: _Turn, attempt: int) -> Optional[Message]:
		self._running = True
		self._cancel_requested = False
		try:
			await self._run(turn, attempt)
		finally:
			self._running = False
			self._inflight = None
			self._cancel_requested = False
		return self.store.state.find_message(turn.assistant_temp_id)

	async def _run(self, turn: _Turn, attempt: int) -> None:
		while True:
			self._begin_attempt(turn, attempt)
			try:
				await self._guarded(self._attempt(turn), self.timeout)
			except TurnCancelledError:
				self._finish_cancelled(turn)
				return
			except Exception as exc:
				error = self.classifier.classify(exc, "sendMessage")
				self._mark_failed(turn)
				if not self.policy.should_retry(attempt, error.is_transient):
					self._finish_failed(error)
					return
				attempt += 1
				self.store.set_typing(False)
				self.store.set_ai_loading(
					True,
					f"{error.message} Retrying... (Attempt {attempt + 1}/{self.policy.max_attempts})",
				)
				self.store.set_turn_status(TurnStatus.RETRY_WAIT)
				logging.warning("Retrying message for session %s after %s (attempt %s)", turn.session_id, error.kind.value, attempt + 1)
				try:
					await self._guarded(self.sleep(self.policy.backoff_delay(attempt)))
				except TurnCancelledError:
					self._finish_cancelled(turn)
					return
				continue
			self._finish_completed()
			return

	async def _guarded(self, awaitable: Awaitable, timeout: Optional[float] = None):
		if self._cancel_requested:
			self._cancel_requested = False
			if asyncio.iscoroutine(awaitable):
				awaitable.close()
			raise TurnCancelledError()
		task = asyncio.ensure_future(awaitable)
		self._inflight = task
		try:
			done, _ = await asyncio.wait({task}, timeout=timeout)
		except asyncio.CancelledError:
			task.cancel()
			raise
		finally:
			self._inflight = None
		if self._cancel_requested:
			self._cancel_requested = False
			await self._settle(task)
			raise TurnCancelledError()
		if not done:
			await self._settle(task)
			raise asyncio.TimeoutError(f"AI response timed out after {timeout:g} seconds.")
		return task.result()

	@staticmethod
	async def _settle(task: asyncio.Future) -> None:
		if not task.done():
			task.cancel()
			await asyncio.wait({task})

	async def _attempt(self, turn: _Turn) -> None:
		async with self.api.open_turn(turn.session_id, turn.text) as reply:
			self.store.confirm_message(
				turn.user_temp_id,
				reply.user_message_id or self.id_factory(),
				status=MessageStatus.COMPLETED,
			)
			self.store.set_turn_status(TurnStatus.STREAMING)

			def on_chunk(accumulated: str) -> None:
				self.store.patch_message(turn.assistant_temp_id, content=accumulated, status=MessageStatus.STREAMING)

			text = await self.reader.read_all(reply.chunks, on_chunk)
			durable_id = reply.assistant_message_id or self.id_factory()
		self.store.confirm_message(turn.assistant_temp_id, durable_id, content=text, status=MessageStatus.COMPLETED)

	def _begin_attempt(self, turn: _Turn, attempt: int) -> None:
		self.store.patch_message(
			turn.user_temp_id,
			status=MessageStatus.PENDING,
			retry_count=attempt,
			attempt_number=turn.first_attempt_number + attempt,
		)
		self.store.patch_message(turn.assistant_temp_id, status=MessageStatus.STREAMING)
		self.store.clear_ai_error()
		self.store.set_ai_loading(True, "Waiting for AI response...")
		self.store.set_typing(True)
		self.store.update(turn_status=TurnStatus.SENDING, estimated_wait_time=self.timeout)

	def _mark_failed(self, turn: _Turn) -> None:
		# Partial assistant content stays in place.
		self.store.patch_message(turn.user_temp_id, status=MessageStatus.FAILED)
		self.store.patch_message(turn.assistant_temp_id, status=MessageStatus.FAILED)

	def _finish_completed(self) -> None:
		self.store.update(
			turn_status=TurnStatus.COMPLETED,
			is_typing=False,
			loading=LoadingState(),
			ai_response_loading=LoadingState(),
			ai_response_error=ErrorState(),
			estimated_wait_time=self.timeout,
		)

	def _finish_failed(self, error: PlannerError) -> None:
		if error.is_transient:
			summary = "Failed to send message after multiple retries."
		else:
			summary = f"Failed to send message: {error.message}"
		self.store.update(
			turn_status=TurnStatus.FAILED,
			is_typing=False,
			loading=LoadingState(),
			ai_response_loading=LoadingState(),
			error=ErrorState.from_error(error, summary),
			ai_response_error=ErrorState.from_error(error),
			estimated_wait_time=self.timeout,
		)

	def _finish_cancelled(self, turn: _Turn) -> None:
		user = self.store.state.find_message(turn.user_temp_id)
		if user is not None and user.status is MessageStatus.PENDING:
			self.store.patch_message(turn.user_temp_id, status=MessageStatus.FAILED)
		self.store.patch_message(turn.assistant_temp_id, status=MessageStatus.FAILED)
		self.store.update(
			turn_status=TurnStatus.CANCELLED,
			is_typing=False,
			loading=LoadingState(),
			ai_response_loading=LoadingState(),
			ai_response_error=ErrorState.cancelled(),
		)
		logging.info("AI response cancelled for session %s", turn.session_id)
