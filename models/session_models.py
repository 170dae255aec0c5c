"""Session and message domain models for business planning conversations."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


def utc_now() -> str:
	"""Return the current UTC time as an ISO-8601 string."""
	return datetime.now(timezone.utc).isoformat()


class SessionStatus(str, Enum):
	ACTIVE = "active"
	COMPLETED = "completed"
	ARCHIVED = "archived"


class MessageStatus(str, Enum):
	PENDING = "pending"
	STREAMING = "streaming"
	COMPLETED = "completed"
	FAILED = "failed"


class TurnStatus(str, Enum):
	"""Where the current conversational turn sits in its lifecycle."""

	IDLE = "idle"
	SENDING = "sending"
	STREAMING = "streaming"
	RETRY_WAIT = "retry_wait"
	COMPLETED = "completed"
	FAILED = "failed"
	CANCELLED = "cancelled"


@dataclass(frozen=True)
class SessionContext:
	"""Business details captured during onboarding and sent with every turn."""

	business_type: str
	target_market: str
	challenge: str
	additional_context: Optional[str] = None
	created_at: str = field(default_factory=utc_now)

	def to_dict(self) -> Dict[str, Any]:
		data: Dict[str, Any] = {
			"business_type": self.business_type,
			"target_market": self.target_market,
			"challenge": self.challenge,
			"created_at": self.created_at,
		}
		if self.additional_context:
			data["additional_context"] = self.additional_context
		return data

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> SessionContext:
		return cls(
			business_type=str(data.get("business_type") or ""),
			target_market=str(data.get("target_market") or ""),
			challenge=str(data.get("challenge") or ""),
			additional_context=data.get("additional_context") or None,
			created_at=data.get("created_at") or utc_now(),
		)


@dataclass(frozen=True)
class Session:
	"""A planning conversation owned by one caller."""

	id: str
	user_id: str
	title: str
	context: SessionContext
	status: SessionStatus = SessionStatus.ACTIVE
	created_at: str = field(default_factory=utc_now)
	updated_at: str = field(default_factory=utc_now)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"user_id": self.user_id,
			"title": self.title,
			"context": self.context.to_dict(),
			"status": self.status.value,
			"created_at": self.created_at,
			"updated_at": self.updated_at,
		}

	@classmethod
	def from_dict(cls, data: Mapping[str, Any]) -> Session:
		context = data.get("context") or {}
		if isinstance(context, str):
			context = json.loads(context)
		return cls(
			id=str(data["id"]),
			user_id=str(data.get("user_id") or ""),
			title=data.get("title") or "",
			context=SessionContext.from_dict(context),
			status=SessionStatus(data.get("status") or SessionStatus.ACTIVE.value),
			created_at=data.get("created_at") or utc_now(),
			updated_at=data.get("updated_at") or utc_now(),
		)


@dataclass(frozen=True)
class PendingRef:
	"""Reference for a message the backend has not confirmed yet."""

	temp_id: str


@dataclass(frozen=True)
class ConfirmedRef:
	"""Reference carrying the durable backend id plus the original client id."""

	id: str
	temp_id: str


MessageRef = Union[PendingRef, ConfirmedRef]


@dataclass(frozen=True)
class Message:
	"""One chat message as seen by the client.

	The client-side ``temp_id`` never changes, so a message keeps its place in
	the UI across retries and after the backend assigns a durable id.
	"""

	ref: MessageRef
	session_id: str
	role: str
	content: str = ""
	status: MessageStatus = MessageStatus.PENDING
	tokens_used: int = 0
	retry_count: int = 0
	attempt_number: int = 1
	max_retries: int = 3
	reply_to: Optional[str] = None
	created_at: str = field(default_factory=utc_now)

	@property
	def temp_id(self) -> str:
		return self.ref.temp_id

	@property
	def id(self) -> str:
		if isinstance(self.ref, ConfirmedRef):
			return self.ref.id
		return self.ref.temp_id

	@property
	def optimistic(self) -> bool:
		return isinstance(self.ref, PendingRef)

	def confirm(self, durable_id: str) -> Message:
		"""Promote the reference to a confirmed one carrying ``durable_id``."""
		if isinstance(self.ref, PendingRef):
			ref: MessageRef = ConfirmedRef(id=durable_id, temp_id=self.ref.temp_id)
		elif isinstance(self.ref, ConfirmedRef):
			# A resubmitted message is stored again by the backend under a new id.
			ref = replace(self.ref, id=durable_id)
		else:
			raise TypeError(f"Unknown message reference: {self.ref!r}")
		return replace(self, ref=ref)

	@classmethod
	def from_record(cls, data: Mapping[str, Any]) -> Message:
		"""Build a confirmed, completed message from a backend record."""
		message_id = str(data["id"])
		return cls(
			ref=ConfirmedRef(id=message_id, temp_id=message_id),
			session_id=str(data.get("session_id") or ""),
			role=data.get("role") or "assistant",
			content=data.get("content") or "",
			status=MessageStatus.COMPLETED,
			tokens_used=int(data.get("tokens_used") or 0),
			created_at=data.get("created_at") or utc_now(),
		)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"temp_id": self.temp_id,
			"session_id": self.session_id,
			"role": self.role,
			"content": self.content,
			"status": self.status.value,
			"tokens_used": self.tokens_used,
			"retry_count": self.retry_count,
			"attempt_number": self.attempt_number,
			"max_retries": self.max_retries,
			"optimistic": self.optimistic,
			"created_at": self.created_at,
		}
