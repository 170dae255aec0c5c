"""Single-writer state container for the planner conversation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Optional, Tuple

from models.planner_errors import ErrorState, SessionCreationRetryInfo, SessionCreationStatus
from models.session_models import Message, Session, TurnStatus


@dataclass(frozen=True)
class LoadingState:
	is_loading: bool = False
	message: Optional[str] = None


@dataclass(frozen=True)
class ConversationState:
	"""Immutable snapshot of everything the planner UI renders."""

	current_session: Optional[Session] = None
	sessions: Tuple[Session, ...] = ()
	messages: Tuple[Message, ...] = ()
	loading: LoadingState = field(default_factory=LoadingState)
	error: ErrorState = field(default_factory=ErrorState)
	ai_response_loading: LoadingState = field(default_factory=LoadingState)
	ai_response_error: ErrorState = field(default_factory=ErrorState)
	is_typing: bool = False
	sessions_loaded: bool = False
	messages_loaded: bool = False
	estimated_wait_time: float = 30.0
	turn_status: TurnStatus = TurnStatus.IDLE
	session_creation_status: SessionCreationStatus = SessionCreationStatus.IDLE
	session_creation_retry_info: SessionCreationRetryInfo = field(default_factory=SessionCreationRetryInfo)

	def find_message(self, temp_id: str) -> Optional[Message]:
		for message in self.messages:
			if message.temp_id == temp_id:
				return message
		return None

	def reply_for(self, temp_id: str) -> Optional[Message]:
		"""Return the assistant placeholder answering the user message ``temp_id``."""
		for message in self.messages:
			if message.role == "assistant" and message.reply_to == temp_id:
				return message
		return None


Listener = Callable[[ConversationState], None]
Transform = Callable[[ConversationState], ConversationState]


class ConversationStore:
	"""Hold the current :class:`ConversationState` and apply writes in order.

	Every write replaces the whole snapshot with the result of a pure
	transform, synchronously, so a read straight after a write always sees it
	and no await can land between the read and the write of one transform.
	Instances are passed explicitly; there is no module-level store.
	"""

	def __init__(self, initial: Optional[ConversationState] = None) -> None:
		self._state = initial or ConversationState()
		self._listeners: List[Listener] = []

	@property
	def state(self) -> ConversationState:
		return self._state

	def subscribe(self, listener: Listener) -> Callable[[], None]:
		"""Register ``listener`` for every new snapshot; returns an unsubscribe callable."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def apply(self, transform: Transform) -> ConversationState:
		new_state = transform(self._state)
		if not isinstance(new_state, ConversationState):
			raise TypeError(f"State transform returned {type(new_state).__name__}, expected ConversationState")
		self._state = new_state
		for listener in list(self._listeners):
			try:
				listener(new_state)
			except Exception as exc:
				logging.error("Conversation store listener failed: %s", exc)
		return new_state

	def update(self, **changes) -> ConversationState:
		return self.apply(lambda state: replace(state, **changes))

	# Messages

	def append_message(self, message: Message) -> ConversationState:
		return self.apply(lambda state: replace(state, messages=state.messages + (message,)))

	def patch_message(self, temp_id: str, **changes) -> ConversationState:
		"""Replace fields on the message with ``temp_id``; unknown ids are a no-op."""

		def transform(state: ConversationState) -> ConversationState:
			if state.find_message(temp_id) is None:
				return state
			messages = tuple(
				replace(message, **changes) if message.temp_id == temp_id else message
				for message in state.messages
			)
			return replace(state, messages=messages)

		return self.apply(transform)

	def confirm_message(self, temp_id: str, durable_id: str, **changes) -> ConversationState:
		"""Reconcile an optimistic message with the id the backend assigned."""

		def transform(state: ConversationState) -> ConversationState:
			if state.find_message(temp_id) is None:
				return state
			messages = tuple(
				replace(message.confirm(durable_id), **changes) if message.temp_id == temp_id else message
				for message in state.messages
			)
			return replace(state, messages=messages)

		return self.apply(transform)

	def replace_messages(self, messages: Iterable[Message]) -> ConversationState:
		return self.update(messages=tuple(messages), messages_loaded=True)

	def clear_messages(self) -> ConversationState:
		return self.update(messages=(), messages_loaded=False)

	# Sessions

	def replace_sessions(self, sessions: Iterable[Session]) -> ConversationState:
		return self.update(sessions=tuple(sessions), sessions_loaded=True)

	def add_session(self, session: Session) -> ConversationState:
		return self.apply(lambda state: replace(state, sessions=state.sessions + (session,)))

	def patch_session(self, session: Session) -> ConversationState:
		"""Swap in an updated copy of ``session`` wherever it appears."""

		def transform(state: ConversationState) -> ConversationState:
			sessions = tuple(session if item.id == session.id else item for item in state.sessions)
			current = state.current_session
			if current is not None and current.id == session.id:
				current = session
			return replace(state, sessions=sessions, current_session=current)

		return self.apply(transform)

	def remove_session(self, session_id: str) -> ConversationState:
		def transform(state: ConversationState) -> ConversationState:
			sessions = tuple(item for item in state.sessions if item.id != session_id)
			if state.current_session is not None and state.current_session.id == session_id:
				return replace(state, sessions=sessions, current_session=None, messages=(), messages_loaded=False)
			return replace(state, sessions=sessions)

		return self.apply(transform)

	def set_active_session(self, session: Optional[Session]) -> ConversationState:
		return self.update(current_session=session)

	# Flags and errors

	def set_loading(self, is_loading: bool, message: Optional[str] = None) -> ConversationState:
		return self.update(loading=LoadingState(is_loading, message if is_loading else None))

	def set_error(self, error: ErrorState) -> ConversationState:
		return self.update(error=error)

	def clear_error(self) -> ConversationState:
		return self.update(error=ErrorState())

	def set_ai_loading(self, is_loading: bool, message: Optional[str] = None) -> ConversationState:
		return self.update(ai_response_loading=LoadingState(is_loading, message if is_loading else None))

	def set_ai_error(self, error: ErrorState) -> ConversationState:
		return self.update(ai_response_error=error)

	def clear_ai_error(self) -> ConversationState:
		return self.update(ai_response_error=ErrorState())

	def set_typing(self, is_typing: bool) -> ConversationState:
		return self.update(is_typing=is_typing)

	def set_turn_status(self, status: TurnStatus) -> ConversationState:
		return self.update(turn_status=status)
