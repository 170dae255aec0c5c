import asyncio
from unittest.mock import MagicMock

import httpx
import pytest

from models.planner_errors import (
    ApiResponseError,
    ContextValidationError,
    ErrorKind,
    PlannerError,
    StreamInterruptedError,
)
from services.planner.error_classifier import ErrorClassifier, classify_error
from services.planner.error_reporter import ErrorReporter


@pytest.mark.parametrize(
    "raw, kind, transient",
    [
        (asyncio.TimeoutError(), ErrorKind.TIMEOUT, True),
        (httpx.ReadTimeout("read timed out"), ErrorKind.TIMEOUT, True),
        (httpx.ConnectError("connection refused"), ErrorKind.NETWORK_ERROR, True),
        (ApiResponseError(429, {"code": "BP_RATE_LIMIT_EXCEEDED", "message": "Slow down"}), ErrorKind.RATE_LIMIT_EXCEEDED, True),
        (ApiResponseError(503, {"message": "unavailable"}), ErrorKind.SERVER_ERROR, True),
        (ApiResponseError(409, {"code": "BP_SESSION_LIMIT_EXCEEDED", "message": "Too many"}), ErrorKind.API_ERROR, False),
        (ContextValidationError(["Business type is required."]), ErrorKind.VALIDATION_ERROR, False),
        (ValueError("something odd"), ErrorKind.UNKNOWN_ERROR, False),
    ],
)
def test_classify_error_kinds(raw, kind, transient):
    error = classify_error(raw)
    assert error.kind is kind
    assert error.is_transient is transient
    assert error.cause is raw


def test_api_error_keeps_backend_code_and_payload():
    raw = ApiResponseError(409, {"code": "BP_SESSION_LIMIT_EXCEEDED", "message": "Maximum 5 active sessions allowed per user"})
    error = classify_error(raw)
    assert error.code == "BP_SESSION_LIMIT_EXCEEDED"
    assert error.message == "Maximum 5 active sessions allowed per user"
    assert error.status_code == 409
    assert error.payload["code"] == "BP_SESSION_LIMIT_EXCEEDED"


def test_rate_limit_without_message_uses_default():
    error = classify_error(ApiResponseError(429, {}))
    assert error.message == "Too many requests. Please try again later."


def test_interrupted_stream_is_classified_by_its_cause():
    raw = StreamInterruptedError("Reduce churn", httpx.ReadError("peer closed connection"))
    error = classify_error(raw)
    assert error.kind is ErrorKind.NETWORK_ERROR
    assert error.is_transient


def test_already_classified_error_passes_through():
    original = PlannerError(ErrorKind.SERVER_ERROR, "boom")
    assert classify_error(original) is original


def test_validation_error_message_lists_all_problems():
    raw = ContextValidationError(["Business type is required.", "Target market is required."])
    error = classify_error(raw)
    assert error.message == "Validation failed: Business type is required., Target market is required."


def test_classifier_reports_every_error():
    reporter = MagicMock(spec=ErrorReporter)
    classifier = ErrorClassifier(reporter)

    error = classifier.classify(ApiResponseError(500, {"message": "db down"}), "createSession")

    reporter.report.assert_called_once()
    operation, reported, details = reporter.report.call_args.args
    assert operation == "createSession"
    assert reported is error
    assert details == {"kind": "SERVER_ERROR", "code": "SERVER_ERROR", "isTransient": True}


def test_reporter_failure_does_not_change_classification():
    reporter = MagicMock(spec=ErrorReporter)
    reporter.report.side_effect = RuntimeError("sink exploded")
    classifier = ErrorClassifier(reporter)

    error = classifier.classify(httpx.ConnectError("offline"), "sendMessage")

    assert error.kind is ErrorKind.NETWORK_ERROR
    assert error.is_transient
