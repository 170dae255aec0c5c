"""Bounded retry decisions and backoff delays."""

from __future__ import annotations

from dataclasses import dataclass

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2.0


@dataclass(frozen=True)
class RetryPolicy:
	"""Decide whether a failed attempt is retried and how long to wait.

	Attempts are zero-indexed. With ``max_retries=3`` there are at most four
	attempts (0-3). When ``growing`` is set the delay before attempt ``n`` is
	``base_delay * (n + 1)``, otherwise it is always ``base_delay``.
	"""

	max_retries: int = MAX_RETRIES
	base_delay: float = RETRY_DELAY_SECONDS
	growing: bool = False

	@classmethod
	def for_messages(cls, max_retries: int = MAX_RETRIES, base_delay: float = RETRY_DELAY_SECONDS) -> RetryPolicy:
		return cls(max_retries=max_retries, base_delay=base_delay, growing=False)

	@classmethod
	def for_session_creation(cls, max_retries: int = MAX_RETRIES, base_delay: float = RETRY_DELAY_SECONDS) -> RetryPolicy:
		return cls(max_retries=max_retries, base_delay=base_delay, growing=True)

	@property
	def max_attempts(self) -> int:
		return self.max_retries + 1

	def should_retry(self, attempt: int, is_transient: bool) -> bool:
		"""Return True when the failed ``attempt`` may be followed by another."""
		return is_transient and attempt < self.max_retries

	def backoff_delay(self, attempt: int) -> float:
		"""Seconds to wait before making ``attempt`` (the upcoming attempt index)."""
		if self.growing:
			return self.base_delay * (attempt + 1)
		return self.base_delay
