"""Wire the planner client components around one conversation store."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from models.session_models import Message, Session, SessionContext
from services.planner.conversation_store import ConversationState, ConversationStore
from services.planner.error_classifier import ErrorClassifier
from services.planner.error_reporter import ErrorReporter
from services.planner.planner_api import PlannerApiClient
from services.planner.retry_policy import RetryPolicy
from services.planner.session_lifecycle import SessionLifecycleManager
from services.planner.turn_executor import TurnExecutor
from utils.settings import ClientSettings


class PlannerOrchestrator:
	"""Facade exposing the planner actions a UI binds to.

	Each orchestrator owns its own store; build one per conversation view.
	"""

	def __init__(
		self,
		http_client: httpx.AsyncClient,
		*,
		credential: Optional[str] = None,
		settings: Optional[ClientSettings] = None,
		store: Optional[ConversationStore] = None,
		reporter: Optional[ErrorReporter] = None,
	) -> None:
		self.settings = settings or ClientSettings()
		self.http_client = http_client
		self.store = store or ConversationStore()
		self.reporter = reporter or ErrorReporter(http_client, user_agent=self.settings.user_agent)
		self.api = PlannerApiClient(http_client, credential)
		self.classifier = ErrorClassifier(self.reporter)
		self.turns = TurnExecutor(
			self.store,
			self.api,
			self.classifier,
			policy=RetryPolicy.for_messages(self.settings.max_retries, self.settings.retry_delay_seconds),
			timeout=self.settings.ai_timeout_seconds,
		)
		self.sessions = SessionLifecycleManager(
			self.store,
			self.api,
			self.classifier,
			self.turns,
			policy=RetryPolicy.for_session_creation(self.settings.max_retries, self.settings.retry_delay_seconds),
			timeout=self.settings.ai_timeout_seconds,
		)
		self._owns_client = False

	@classmethod
	def from_settings(cls, settings: Optional[ClientSettings] = None, credential: Optional[str] = None) -> PlannerOrchestrator:
		settings = settings or ClientSettings.from_env()
		client = httpx.AsyncClient(
			base_url=settings.api_base_url,
			headers={"User-Agent": settings.user_agent},
			timeout=httpx.Timeout(settings.ai_timeout_seconds),
		)
		orchestrator = cls(client, credential=credential, settings=settings)
		orchestrator._owns_client = True
		return orchestrator

	@property
	def state(self) -> ConversationState:
		return self.store.state

	async def create_session(self, context: SessionContext, first_message: str = "") -> Optional[Session]:
		return await self.sessions.create_session(context, first_message)

	async def retry_create_session(self) -> Optional[Session]:
		return await self.sessions.retry_create_session()

	async def send_message(self, message: str, session_id: Optional[str] = None) -> Optional[Message]:
		return await self.turns.send(message, session_id)

	async def retry_send_message(self, temp_id: str) -> Optional[Message]:
		return await self.turns.resend(temp_id)

	def cancel_ai_response(self) -> bool:
		return self.turns.cancel()

	async def fetch_sessions(self) -> None:
		await self.sessions.fetch_sessions()

	async def select_session(self, session_id: str) -> Optional[Session]:
		return await self.sessions.select_session(session_id)

	async def delete_session(self, session_id: str) -> bool:
		return await self.sessions.delete_session(session_id)

	async def update_session_title(self, session_id: str, title: str) -> Optional[Session]:
		return await self.sessions.update_session_title(session_id, title)

	def clear_chat(self) -> None:
		self.sessions.clear_chat()

	async def fetch_usage(self) -> Dict[str, Any]:
		"""Return the caller's conversation allowance as reported by the backend."""
		payload = await self.api.get_usage()
		return payload.get("usage", {})

	async def aclose(self) -> None:
		await self.reporter.drain()
		if self._owns_client:
			await self.http_client.aclose()

	async def __aenter__(self) -> PlannerOrchestrator:
		return self

	async def __aexit__(self, exc_type, exc, tb) -> None:
		await self.aclose()
