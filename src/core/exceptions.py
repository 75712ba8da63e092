"""Domain-specific exception hierarchy for consistent error handling."""

from __future__ import annotations

from typing import Any


class ResearchPipelineError(Exception):
    """Base exception for all expected pipeline errors."""

    def __init__(
        self,
        *,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Serialise the error into a structured payload."""

        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidResearchRequestError(ResearchPipelineError):
    """Raised when a research request cannot be processed at all."""

    def __init__(self, reason: str, **details: Any) -> None:
        super().__init__(
            message=f"Invalid research request: {reason}",
            error_code="INVALID_RESEARCH_REQUEST",
            details={"reason": reason, **details},
        )


class ConfigurationError(ResearchPipelineError):
    """Raised when pipeline configuration values are unusable."""

    def __init__(self, setting: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid configuration for {setting}: {reason}",
            error_code="INVALID_CONFIGURATION",
            details={"setting": setting, "reason": reason},
        )


class UpstreamError(ResearchPipelineError):
    """Base class for recoverable failures of a single upstream attempt.

    ``transport_class`` marks failures caused by the network or the upstream
    being slow rather than by the content it returned; backoff adds a penalty
    for those.
    """

    transport_class: bool = False

    def __init__(
        self,
        *,
        message: str,
        error_code: str,
        original_error: Exception | None = None,
        **details: Any,
    ) -> None:
        if original_error is not None:
            details["original_error"] = str(original_error)
        super().__init__(message=message, error_code=error_code, details=details)


class TransportError(UpstreamError):
    """Network, connection or HTTP-level failure of the upstream service."""

    transport_class = True

    def __init__(
        self,
        message: str,
        *,
        service: str = "upstream",
        original_error: Exception | None = None,
        **details: Any,
    ) -> None:
        super().__init__(
            message=f"{service} transport error: {message}",
            error_code="UPSTREAM_TRANSPORT_ERROR",
            original_error=original_error,
            service=service,
            **details,
        )


class AttemptTimeoutError(UpstreamError):
    """An attempt exceeded its deadline and the in-flight call was abandoned."""

    transport_class = True

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            message=f"Upstream call exceeded {timeout_seconds:g}s deadline",
            error_code="UPSTREAM_TIMEOUT",
            timeout_seconds=timeout_seconds,
        )


class ShallowResponseError(UpstreamError):
    """The upstream answered, but the quality gate rejected the text."""

    def __init__(self, reason: str, word_count: int) -> None:
        super().__init__(
            message=f"Response rejected by quality gate: {reason}",
            error_code="SHALLOW_RESPONSE",
            reason=reason,
            word_count=word_count,
        )
        self.reason = reason
        self.word_count = word_count


class MalformedResponseError(UpstreamError):
    """The upstream returned a payload without a usable text field."""

    def __init__(self, message: str = "No text content found in upstream response") -> None:
        super().__init__(message=message, error_code="MALFORMED_RESPONSE")


__all__ = [
    "ResearchPipelineError",
    "InvalidResearchRequestError",
    "ConfigurationError",
    "UpstreamError",
    "TransportError",
    "AttemptTimeoutError",
    "ShallowResponseError",
    "MalformedResponseError",
]
