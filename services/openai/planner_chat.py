"""Streamed business planning replies using the OpenAI Responses API.

The chat endpoint needs the reply as it is generated, so the request is made
with ``stream=True`` and the text deltas are handed to the caller one at a
time. Token usage arrives with the final ``response.completed`` event and is
available on the stream object once iteration finishes.
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from models.session_models import SessionContext
from services.openai.planner_prompts import format_system_prompt
from services.openai.response_parser import extract_error_message, extract_usage


class PlannerReplyStream:
    """Async iterator over the text deltas of one model reply."""

    def __init__(self, events: Any) -> None:
        self._events = events
        self.text = ""
        self.usage: Dict[str, Optional[int]] = {"input_tokens": None, "output_tokens": None, "total_tokens": None}
        self.completed = False

    @property
    def tokens_used(self) -> int:
        return self.usage.get("total_tokens") or 0

    async def deltas(self) -> AsyncIterator[str]:
        start = time.time()
        async for event in self._events:
            event_type = getattr(event, "type", None)
            if event_type == "response.output_text.delta":
                delta = getattr(event, "delta", "") or ""
                if delta:
                    self.text += delta
                    yield delta
            elif event_type == "response.completed":
                self.usage = extract_usage(getattr(event, "response", None))
                self.completed = True
            elif event_type in ("response.failed", "error"):
                raise RuntimeError(extract_error_message(event))
        logging.info(f"Planner reply stream latency: {time.time() - start:.3f}s")


class PlannerChatService:
    """Generate business planning replies for a session."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-5", max_output_tokens: int = 2000) -> None:
        if client is None:
            raise ValueError("OpenAI AsyncOpenAI client is required.")
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens

    @staticmethod
    def build_input(context: SessionContext, history: List[Dict[str, str]], message: str) -> List[Dict[str, Any]]:
        """Assemble the system prompt, prior turns and the new user message."""
        items: List[Dict[str, Any]] = [
            {
                "type": "message",
                "role": "system",
                "content": [{"type": "input_text", "text": format_system_prompt(context)}],
            }
        ]
        for turn in history:
            if turn.get("role") in ("user", "assistant") and turn.get("content"):
                items.append({"role": turn["role"], "content": turn["content"]})
        items.append(
            {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": message}],
            }
        )
        return items

    async def start_reply(
        self,
        context: SessionContext,
        history: List[Dict[str, str]],
        message: str,
    ) -> PlannerReplyStream:
        """Open the model stream. Failures here happen before any text is sent."""
        try:
            events = await self.client.responses.create(
                model=self.model,
                input=self.build_input(context, history, message),
                max_output_tokens=self.max_output_tokens,
                stream=True,
            )
        except Exception as exc:
            logging.error(f"OpenAI Responses API error: {exc}")
            raise
        return PlannerReplyStream(events)
