import httpx
import pytest

from models.planner_errors import ErrorKind, PlannerError
from services.planner.error_reporter import ErrorReporter


def _raised(exc):
    try:
        raise exc
    except Exception as caught:
        return caught


@pytest.mark.asyncio
async def test_report_posts_payload_to_log_sink(backend, reporter):
    cause = _raised(httpx.ConnectError("offline"))
    error = PlannerError(ErrorKind.NETWORK_ERROR, "Network error.", cause=cause)

    reporter.report("sendMessage", error, {"kind": "NETWORK_ERROR"})
    await reporter.drain()

    assert len(backend.error_reports) == 1
    report = backend.error_reports[0]
    assert report["message"] == "Network error."
    assert report["context"] == "sendMessage"
    assert report["details"] == {"kind": "NETWORK_ERROR"}
    assert report["url"] == "http://planner.test/dashboard"
    assert "ConnectError" in report["stack"]
    assert report["timestamp"]


@pytest.mark.asyncio
async def test_sink_failure_is_swallowed():
    async def broken(request):
        raise httpx.ConnectError("sink unreachable")

    async with httpx.AsyncClient(transport=httpx.MockTransport(broken), base_url="http://planner.test") as client:
        reporter = ErrorReporter(client)
        reporter.report("createSession", PlannerError(ErrorKind.SERVER_ERROR, "boom"))
        await reporter.drain()


def test_report_without_client_only_logs(caplog):
    reporter = ErrorReporter()
    reporter.report("fetchSessions", PlannerError(ErrorKind.UNKNOWN_ERROR, "odd"))
    assert "fetchSessions" in caplog.text
