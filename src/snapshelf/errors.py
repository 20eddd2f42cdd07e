"""Error kinds raised while talking to the recognition service."""

from __future__ import annotations

from typing import Optional


class RecognitionError(RuntimeError):
    """Base class for recognition/generation failures surfaced to callers."""

    retryable = False


class RecognitionUnavailableError(RecognitionError):
    """The recognition service is not configured (missing API key)."""


class MalformedResponseError(RecognitionError):
    """The service answered, but the payload is unparseable or schema-invalid."""


class EmptyResponseError(RecognitionError):
    """The service returned no usable content (blocked, filtered or truncated)."""

    def __init__(self, message: str, *, reason: Optional[str] = None) -> None:
        super().__init__(message)
        self.reason = reason


class UpstreamTimeoutError(RecognitionError):
    """The service call exceeded its deadline."""

    retryable = True


class UpstreamError(RecognitionError):
    """The service returned a non-2xx status or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


__all__ = [
    "RecognitionError",
    "RecognitionUnavailableError",
    "MalformedResponseError",
    "EmptyResponseError",
    "UpstreamTimeoutError",
    "UpstreamError",
]
