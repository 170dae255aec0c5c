"""Map raw failures from planner calls onto the planner error taxonomy."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from models.planner_errors import (
	ApiResponseError,
	ContextValidationError,
	ErrorKind,
	PlannerError,
	StreamInterruptedError,
)
from services.planner.error_reporter import ErrorReporter


def classify_error(raw_error: BaseException) -> PlannerError:
	"""Return the :class:`PlannerError` for ``raw_error`` without side effects."""
	if isinstance(raw_error, PlannerError):
		return raw_error
	if isinstance(raw_error, StreamInterruptedError):
		return classify_error(raw_error.cause)
	# TimeoutError is an OSError subclass, so it must be matched first.
	if isinstance(raw_error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
		return PlannerError(ErrorKind.TIMEOUT, "AI response timed out.", cause=raw_error)
	if isinstance(raw_error, (httpx.TransportError, ConnectionError)):
		return PlannerError(
			ErrorKind.NETWORK_ERROR,
			"Network error. Please check your internet connection.",
			cause=raw_error,
		)
	if isinstance(raw_error, ApiResponseError):
		return _classify_response(raw_error)
	if isinstance(raw_error, ContextValidationError):
		return PlannerError(ErrorKind.VALIDATION_ERROR, str(raw_error), cause=raw_error)
	return PlannerError(
		ErrorKind.UNKNOWN_ERROR,
		str(raw_error) or "An unknown error occurred.",
		cause=raw_error,
	)


def _classify_response(error: ApiResponseError) -> PlannerError:
	message = error.payload.get("message")
	if error.status_code == 429:
		return PlannerError(
			ErrorKind.RATE_LIMIT_EXCEEDED,
			message or "Too many requests. Please try again later.",
			code=error.code or ErrorKind.RATE_LIMIT_EXCEEDED.value,
			status_code=error.status_code,
			payload=error.payload,
			cause=error,
		)
	if error.status_code >= 500:
		return PlannerError(
			ErrorKind.SERVER_ERROR,
			message or "Server error. Please try again.",
			code=error.code or ErrorKind.SERVER_ERROR.value,
			status_code=error.status_code,
			payload=error.payload,
			cause=error,
		)
	return PlannerError(
		ErrorKind.API_ERROR,
		message or "The planner service rejected the request.",
		code=error.code or ErrorKind.UNKNOWN_ERROR.value,
		status_code=error.status_code,
		payload=error.payload,
		cause=error,
	)


class ErrorClassifier:
	"""Classify failures and forward each one to the error reporter."""

	def __init__(self, reporter: Optional[ErrorReporter] = None) -> None:
		self.reporter = reporter

	def classify(self, raw_error: BaseException, operation: str = "planner") -> PlannerError:
		error = classify_error(raw_error)
		if self.reporter is not None:
			try:
				self.reporter.report(
					operation,
					error,
					{"kind": error.kind.value, "code": error.code, "isTransient": error.is_transient},
				)
			except Exception as exc:
				# Reporting is best effort and must not change the classification.
				logging.warning("Error reporter failed for %s: %s", operation, exc)
		return error
