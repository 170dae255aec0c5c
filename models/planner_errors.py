"""Error taxonomy and error state for the planner client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from models.session_models import utc_now


class ErrorKind(str, Enum):
	TIMEOUT = "TIMEOUT"
	NETWORK_ERROR = "NETWORK_ERROR"
	RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
	SERVER_ERROR = "SERVER_ERROR"
	VALIDATION_ERROR = "VALIDATION_ERROR"
	API_ERROR = "API_ERROR"
	UNKNOWN_ERROR = "UNKNOWN_ERROR"
	# Raised only by an explicit user cancel, never by the backend.
	CANCELLED = "CANCELLED"


TRANSIENT_KINDS = frozenset(
	{
		ErrorKind.TIMEOUT,
		ErrorKind.NETWORK_ERROR,
		ErrorKind.RATE_LIMIT_EXCEEDED,
		ErrorKind.SERVER_ERROR,
	}
)


class PlannerError(Exception):
	"""A failure that has been classified into an :class:`ErrorKind`."""

	def __init__(
		self,
		kind: ErrorKind,
		message: str,
		*,
		is_transient: Optional[bool] = None,
		code: Optional[str] = None,
		status_code: Optional[int] = None,
		payload: Optional[Dict[str, Any]] = None,
		cause: Optional[BaseException] = None,
		timestamp: Optional[str] = None,
	) -> None:
		super().__init__(message)
		self.kind = kind
		self.message = message
		self.is_transient = kind in TRANSIENT_KINDS if is_transient is None else is_transient
		self.code = code or kind.value
		self.status_code = status_code
		self.payload = payload or {}
		self.cause = cause
		self.timestamp = timestamp or utc_now()

	@property
	def is_timeout(self) -> bool:
		return self.kind is ErrorKind.TIMEOUT

	def __repr__(self) -> str:
		return f"PlannerError(kind={self.kind.value}, code={self.code!r}, transient={self.is_transient}, message={self.message!r})"


class ApiResponseError(Exception):
	"""Non-2xx response from the planner backend with its decoded error body."""

	def __init__(self, status_code: int, payload: Optional[Dict[str, Any]] = None) -> None:
		self.status_code = status_code
		self.payload = payload or {}
		super().__init__(self.payload.get("message") or f"Request failed with status {status_code}")

	@property
	def code(self) -> Optional[str]:
		return self.payload.get("code")


class ContextValidationError(ValueError):
	"""Local pre-flight check of a session context failed."""

	def __init__(self, errors: Iterable[str]) -> None:
		self.errors = list(errors)
		super().__init__(f"Validation failed: {', '.join(self.errors)}")


class StreamInterruptedError(Exception):
	"""The reply stream failed part way; ``partial_text`` is what arrived."""

	def __init__(self, partial_text: str, cause: BaseException) -> None:
		super().__init__(f"Stream interrupted after {len(partial_text)} characters: {cause}")
		self.partial_text = partial_text
		self.cause = cause


class TurnInProgressError(RuntimeError):
	"""A second turn was started while one is still in flight."""


class TurnCancelledError(Exception):
	"""The in-flight turn was aborted by an explicit cancel."""


@dataclass(frozen=True)
class ErrorState:
	has_error: bool = False
	error: Optional[PlannerError] = None
	message: Optional[str] = None
	is_timeout: bool = False

	@classmethod
	def from_error(cls, error: PlannerError, message: Optional[str] = None) -> ErrorState:
		return cls(has_error=True, error=error, message=message or error.message, is_timeout=error.is_timeout)

	@classmethod
	def cancelled(cls) -> ErrorState:
		error = PlannerError(ErrorKind.CANCELLED, "AI response cancelled.", is_transient=False)
		return cls(has_error=True, error=error, message=error.message, is_timeout=False)


class SessionCreationStatus(str, Enum):
	IDLE = "idle"
	IN_PROGRESS = "in_progress"
	SUCCESS = "success"
	FAILED = "failed"
	RETRIED = "retried"


@dataclass(frozen=True)
class SessionCreationRetryInfo:
	retry_count: int = 0
	max_retries: int = 3
	last_error: Optional[PlannerError] = None
	last_attempt_at: Optional[str] = None

	@property
	def retry_available(self) -> bool:
		"""Whether the UI should offer a retry for the failed creation."""
		return self.last_error is not None and self.last_error.is_transient
