"""Shared fixtures: a scripted planner backend for the client and the FastAPI app with a fake model."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from dataclasses import replace
from types import SimpleNamespace
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Tuple, Union

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from main import create_app
from models.session_models import SessionContext
from services.planner.conversation_store import ConversationStore
from services.planner.error_classifier import ErrorClassifier
from services.planner.error_reporter import ErrorReporter
from services.planner.planner_api import CHAT_PATH, SESSIONS_PATH, PlannerApiClient
from services.planner.retry_policy import RetryPolicy
from services.planner.session_lifecycle import SessionLifecycleManager
from services.planner.turn_executor import TurnExecutor
from utils.rate_limits import limiter

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]
Scripted = Union[httpx.Response, Handler]


def session_payload(session_id: str = "sess-1", **overrides: Any) -> Dict[str, Any]:
    payload = {
        "id": session_id,
        "user_id": "user-1",
        "title": "New Business Plan",
        "context": {"business_type": "SaaS", "target_market": "SMBs", "challenge": "retention"},
        "status": "active",
        "created_at": "2026-01-01T00:00:00+00:00",
        "updated_at": "2026-01-01T00:00:00+00:00",
    }
    payload.update(overrides)
    return payload


def streamed_reply(chunks: Iterable[bytes], *, fail_with: Optional[BaseException] = None, stall: bool = False) -> Handler:
    """Build a chat handler streaming ``chunks`` and optionally breaking afterwards."""
    chunk_list = list(chunks)

    async def handler(request: httpx.Request) -> httpx.Response:
        async def body():
            for chunk in chunk_list:
                yield chunk
                await asyncio.sleep(0)
            if stall:
                await asyncio.sleep(30)
            if fail_with is not None:
                raise fail_with

        return httpx.Response(
            200,
            headers={"X-User-Message-Id": "msg-user", "X-Assistant-Message-Id": "msg-assistant"},
            content=body(),
        )

    return handler


def error_reply(status_code: int, code: str, message: str) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"code": code, "message": message})

    return handler


async def hang(request: httpx.Request) -> httpx.Response:
    await asyncio.sleep(30)
    return httpx.Response(500)


class FakePlannerBackend:
    """Answers planner requests from per-endpoint queues and records every call.

    When a queue holds a single entry it is reused for every later call.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.session_replies: Deque[Scripted] = deque()
        self.chat_replies: Deque[Scripted] = deque()
        self.error_reports: List[Dict[str, Any]] = []
        self.routes: Dict[Tuple[str, str], httpx.Response] = {}

    def calls(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    async def _next(self, queue: Deque[Scripted], request: httpx.Request) -> httpx.Response:
        scripted = queue.popleft() if len(queue) > 1 else queue[0]
        if isinstance(scripted, httpx.Response):
            return scripted
        return await scripted(request)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/api/log-error":
            self.error_reports.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True})
        if path == SESSIONS_PATH and request.method == "POST":
            if not self.session_replies:
                return httpx.Response(201, json={"session": session_payload()})
            return await self._next(self.session_replies, request)
        if path == CHAT_PATH:
            if not self.chat_replies:
                return await streamed_reply([b"Reduce", b" churn", b" by..."])(request)
            return await self._next(self.chat_replies, request)
        scripted = self.routes.get((request.method, path))
        if scripted is not None:
            return scripted
        return httpx.Response(404, json={"code": "BP_NOT_FOUND", "message": "Not found"})


class SleepRecorder:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def backend() -> FakePlannerBackend:
    return FakePlannerBackend()


@pytest_asyncio.fixture
async def http_client(backend):
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handler), base_url="http://planner.test")
    yield client
    await client.aclose()


@pytest.fixture
def context() -> SessionContext:
    return SessionContext(business_type="SaaS", target_market="SMBs", challenge="retention")


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def reporter(http_client) -> ErrorReporter:
    return ErrorReporter(http_client, page_url="http://planner.test/dashboard")


@pytest.fixture
def api(http_client) -> PlannerApiClient:
    return PlannerApiClient(http_client, credential="user-1")


@pytest.fixture
def executor(store, api, reporter, sleeper) -> TurnExecutor:
    return TurnExecutor(
        store,
        api,
        ErrorClassifier(reporter),
        policy=RetryPolicy.for_messages(),
        timeout=0.2,
        sleep=sleeper,
    )


@pytest.fixture
def lifecycle(store, api, reporter, executor, sleeper) -> SessionLifecycleManager:
    return SessionLifecycleManager(
        store,
        api,
        ErrorClassifier(reporter),
        executor,
        policy=RetryPolicy.for_session_creation(),
        timeout=1.0,
        sleep=sleeper,
    )


class FakeOpenAIResponses:
    """Stands in for ``AsyncOpenAI().responses`` and streams canned deltas."""

    def __init__(self) -> None:
        self.deltas = ["Reduce", " churn", " by..."]
        self.error: Optional[BaseException] = None
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self._events()

    async def _events(self):
        for delta in self.deltas:
            yield SimpleNamespace(type="response.output_text.delta", delta=delta)
        usage = SimpleNamespace(input_tokens=40, output_tokens=8, total_tokens=48)
        yield SimpleNamespace(type="response.completed", response=SimpleNamespace(usage=usage))


class FakeOpenAI:
    def __init__(self) -> None:
        self.responses = FakeOpenAIResponses()


AUTH = {"Authorization": "Bearer user-1"}
VALID_CONTEXT = {"business_type": "SaaS", "target_market": "SMBs", "challenge": "retention"}


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def planner_app(tmp_path, monkeypatch, fake_openai):
    """The FastAPI app with a temporary database and a scripted model."""
    monkeypatch.setenv("DATABASE_DIR", str(tmp_path))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    limiter.reset()
    return create_app()


@pytest.fixture
def app_client(planner_app, fake_openai):
    with TestClient(planner_app) as client:
        planner_app.state.openai_client = fake_openai
        yield client


def use_settings(app, **changes: Any) -> None:
    app.state.settings = replace(app.state.settings, **changes)
