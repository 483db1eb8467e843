"""Error kinds raised across search, ranking and the agent pipeline."""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    RATE_LIMITED = "RATE_LIMITED"
    MISCONFIGURED = "MISCONFIGURED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    NO_RESULTS = "NO_RESULTS"
    NO_RELEVANT_RESULTS = "NO_RELEVANT_RESULTS"
    SELECTION_EMPTY = "SELECTION_EMPTY"


class SearchScopeError(Exception):
    """Base exception carrying an error kind and an HTTP-style status."""

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR
    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, stage: str | None = None):
        self.message = message or self.default_message
        self.stage = stage
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.RATE_LIMITED

    def to_dict(self) -> dict[str, str]:
        data = {"error": self.message, "kind": self.kind.value}
        if self.stage:
            data["stage"] = self.stage
        return data


class ValidationError(SearchScopeError):
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "Invalid request"


class RateLimitedError(SearchScopeError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429
    default_message = "Rate limit exceeded"


class QuotaExceededError(RateLimitedError):
    """Provider quota exhausted (HTTP 403 with a quota signal)."""

    status_code = 403
    default_message = "Search quota exceeded. Please try again later or contact support."

    @property
    def retryable(self) -> bool:
        return False


class MisconfiguredError(SearchScopeError):
    kind = ErrorKind.MISCONFIGURED
    status_code = 500
    default_message = "Service is not configured"


class UpstreamError(SearchScopeError):
    kind = ErrorKind.UPSTREAM_ERROR
    status_code = 500
    default_message = "Upstream service failed"


class ParseError(SearchScopeError):
    kind = ErrorKind.PARSE_ERROR
    status_code = 500
    default_message = "Could not parse the model response"


class NoResultsError(SearchScopeError):
    kind = ErrorKind.NO_RESULTS
    status_code = 404
    default_message = "No search results found. Please try a different query."


class NoRelevantResultsError(SearchScopeError):
    kind = ErrorKind.NO_RELEVANT_RESULTS
    status_code = 404
    default_message = "No relevant results found. Please try a different query."


class SelectionEmptyError(SearchScopeError):
    kind = ErrorKind.SELECTION_EMPTY
    status_code = 404
    default_message = (
        "Could not find enough diverse, high-quality sources. Please try a different query."
    )
