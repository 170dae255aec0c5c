"""Environment-driven configuration for the planner backend and client.

Values are read with ``os.getenv`` so a ``.env`` file loaded through
python-dotenv at start-up applies to both halves of the application.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class BackendSettings:
    """Limits and model options used by the FastAPI service."""

    openai_model: str = "gpt-5"
    max_output_tokens: int = 2000
    history_limit: int = 10
    free_conversations: int = 10
    paid_conversations: int = 50
    max_active_sessions: int = 5
    max_total_sessions: int = 50
    rate_limit_requests: int = 20
    rate_limit_window_seconds: float = 900.0
    error_log_requests: int = 30
    error_log_window_seconds: float = 60.0

    @classmethod
    def from_env(cls) -> BackendSettings:
        return cls(
            openai_model=os.getenv("PLANNER_OPENAI_MODEL", "gpt-5"),
            max_output_tokens=_env_int("PLANNER_MAX_OUTPUT_TOKENS", 2000),
            history_limit=_env_int("PLANNER_HISTORY_LIMIT", 10),
            free_conversations=_env_int("PLANNER_FREE_CONVERSATIONS", 10),
            paid_conversations=_env_int("PLANNER_PAID_CONVERSATIONS", 50),
            max_active_sessions=_env_int("PLANNER_MAX_ACTIVE_SESSIONS", 5),
            max_total_sessions=_env_int("PLANNER_MAX_TOTAL_SESSIONS", 50),
            rate_limit_requests=_env_int("PLANNER_RATE_LIMIT_REQUESTS", 20),
            rate_limit_window_seconds=_env_float("PLANNER_RATE_LIMIT_WINDOW_SECONDS", 900.0),
            error_log_requests=_env_int("PLANNER_ERROR_LOG_REQUESTS", 30),
            error_log_window_seconds=_env_float("PLANNER_ERROR_LOG_WINDOW_SECONDS", 60.0),
        )


@dataclass(frozen=True)
class ClientSettings:
    """Timeouts and retry budget for the conversational orchestrator."""

    api_base_url: str = "http://localhost:8000"
    ai_timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_delay_seconds: float = 2.0
    user_agent: str = field(default="business-planner-client")

    @classmethod
    def from_env(cls) -> ClientSettings:
        return cls(
            api_base_url=os.getenv("PLANNER_API_BASE_URL", "http://localhost:8000"),
            ai_timeout_seconds=_env_float("PLANNER_AI_TIMEOUT_SECONDS", 30.0),
            max_retries=_env_int("PLANNER_MAX_RETRIES", 3),
            retry_delay_seconds=_env_float("PLANNER_RETRY_DELAY_SECONDS", 2.0),
            user_agent=os.getenv("PLANNER_USER_AGENT", "business-planner-client"),
        )
