"""Stock feed error types."""

from __future__ import annotations

from enum import Enum


class FeedErrorCode(Enum):
    """Error classification codes."""

    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    NETWORK_ERROR = "network_error"
    UPSTREAM_ERROR = "upstream_error"
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    NO_DATA = "no_data"
    PARSE_FAILURE = "parse_failure"
    VALIDATION_FAILED = "validation_failed"
    INVALID_REQUEST = "invalid_request"


class FeedError(Exception):
    """Stock feed exception with error code and retryable flag.

    Upstream problems travel as ``FetchFailure`` values; this exception is
    reserved for caller mistakes and for the strict ``normalize`` path.

    Attributes:
        message: Human-readable error description.
        code: Structured error code for programmatic handling.
        retryable: Whether a later attempt could succeed.
    """

    def __init__(
        self,
        message: str,
        code: FeedErrorCode = FeedErrorCode.UPSTREAM_ERROR,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
