import httpx
import pytest
import pytest_asyncio

from conftest import VALID_CONTEXT, use_settings
from models.planner_errors import ErrorKind, SessionCreationStatus
from models.session_models import MessageStatus, SessionContext
from services.planner.orchestrator import PlannerOrchestrator
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import BackendSettings, ClientSettings


@pytest_asyncio.fixture
async def orchestrator(planner_app, fake_openai, tmp_path):
    # ASGITransport does not run the lifespan, so wire app.state by hand.
    planner_app.state.settings = BackendSettings()
    planner_app.state.db_initializer = AsyncDatabaseInitializer(tmp_path)
    planner_app.state.openai_client = fake_openai
    transport = httpx.ASGITransport(app=planner_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://planner.test") as client:
        async with PlannerOrchestrator(client, credential="user-1", settings=ClientSettings(ai_timeout_seconds=5.0)) as planner:
            yield planner


@pytest.mark.asyncio
async def test_create_session_and_first_turn_against_backend(orchestrator):
    session = await orchestrator.create_session(SessionContext(**VALID_CONTEXT), "How do I reduce churn?")

    state = orchestrator.state
    assert session.title == "New Business Plan"
    assert state.session_creation_status is SessionCreationStatus.SUCCESS
    user, assistant = state.messages
    assert user.status is MessageStatus.COMPLETED
    assert assistant.status is MessageStatus.COMPLETED
    assert assistant.content == "Reduce churn by..."
    assert not assistant.optimistic

    await orchestrator.fetch_sessions()
    await orchestrator.select_session(session.id)

    reloaded = orchestrator.state.messages
    assert [message.id for message in reloaded] == [user.id, assistant.id]
    assert reloaded[1].tokens_used == 48


@pytest.mark.asyncio
async def test_session_limit_surfaces_backend_code(orchestrator, planner_app):
    use_settings(planner_app, max_active_sessions=1)
    await orchestrator.create_session(SessionContext(**VALID_CONTEXT))

    assert await orchestrator.create_session(SessionContext(**VALID_CONTEXT)) is None

    state = orchestrator.state
    assert state.session_creation_status is SessionCreationStatus.FAILED
    assert state.error.error.kind is ErrorKind.API_ERROR
    assert state.error.error.code == "BP_SESSION_LIMIT_EXCEEDED"
    assert state.error.message == "Maximum 1 active sessions allowed per user"
    assert not state.session_creation_retry_info.retry_available


@pytest.mark.asyncio
async def test_rename_and_delete_against_backend(orchestrator):
    session = await orchestrator.create_session(SessionContext(**VALID_CONTEXT))

    renamed = await orchestrator.update_session_title(session.id, "Churn plan")
    assert renamed.title == "Churn plan"
    assert orchestrator.state.current_session.title == "Churn plan"

    assert await orchestrator.delete_session(session.id) is True
    assert orchestrator.state.current_session is None
    await orchestrator.fetch_sessions()
    assert [item.status.value for item in orchestrator.state.sessions] == ["archived"]


@pytest.mark.asyncio
async def test_usage_reflects_completed_turn(orchestrator):
    before = await orchestrator.fetch_usage()
    assert before["free_conversations_used"] == 0

    await orchestrator.create_session(SessionContext(**VALID_CONTEXT), "How do I reduce churn?")
    usage = await orchestrator.fetch_usage()

    assert usage["free_conversations_used"] == 1
    assert usage["total_tokens_used"] == 48
    assert usage["can_continue"]
