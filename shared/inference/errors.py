"""
Closed set of failure kinds raised by the inference layer.

Every error carries the HTTP status and the machine-readable type tag the
HTTP layer needs to build an ErrorResponse, so callers never see a raw
transport or parser exception.
"""

from __future__ import annotations

from typing import Any

VALIDATION_ERROR = "validation_error"
SERVICE_ERROR = "service_error"
CANCELLED_ERROR = "cancelled_error"


class InferenceError(Exception):
    """Base class; never raised directly."""

    error_type: str = SERVICE_ERROR
    http_status: int = 500

    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidRequestError(InferenceError):
    """Caller input violates a request invariant. Never retried."""

    error_type = VALIDATION_ERROR
    http_status = 400


class UpstreamError(InferenceError):
    """A failed exchange with the inference API."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
        model: str | None = None,
        attempts: int = 1,
    ) -> None:
        super().__init__(message, detail)
        self.status_code = status_code
        self.model = model
        self.attempts = attempts

    @property
    def retryable(self) -> bool:
        return True

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        where = f"API error ({self.status_code})"
        if self.model:
            where += f" [{self.model}]"
        if self.detail:
            return f"{where}: {self.message} - {self.detail}"
        return f"{where}: {self.message}"


class UpstreamClientError(UpstreamError):
    """Upstream answered 4xx. Terminal."""

    @property
    def retryable(self) -> bool:
        return False


class UpstreamTransientError(UpstreamError):
    """Network failure or non-4xx error status. Retried until the budget runs out."""


class CancellationError(InferenceError):
    """The call was aborted by its cancellation signal (disconnect or deadline)."""

    error_type = CANCELLED_ERROR

    def __init__(self, reason: str, http_status: int = 504) -> None:
        super().__init__(f"request cancelled: {reason}")
        self.reason = reason
        self.http_status = http_status


class ResponseParseError(InferenceError):
    """Upstream returned 200 with a body the normalizer cannot interpret."""
