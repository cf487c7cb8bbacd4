"""Error taxonomy for the docs.rs fetch pipeline.

Every failure the fetcher can surface is one of a closed set of
``DocsFetcherError`` subclasses, so callers can tell "does not exist" apart
from "transient network/timeout" and "malformed response" and pick a retry
policy accordingly. ``log_error`` is the diagnostic channel: it records the
error with its context fields and never changes control flow.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import structlog

log = structlog.get_logger()

_SNIPPET_LENGTH = 200


class ErrorCode(StrEnum):
    CRATE_NOT_FOUND = "CRATE_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    DECOMPRESSION_FAILED = "DECOMPRESSION_FAILED"
    JSON_PARSE_FAILED = "JSON_PARSE_FAILED"
    CACHE_QUERY_REJECTED = "CACHE_QUERY_REJECTED"
    INVALID_INPUT = "INVALID_INPUT"


class DocsFetcherError(Exception):
    """Base class for all expected failure conditions.

    Caught by server.py and serialised into the MCP error response. Business
    logic raises the concrete subclasses below and lets them propagate.
    """

    code: ErrorCode = ErrorCode.NETWORK_ERROR
    suggestion: str = ""
    recoverable: bool = False

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class CrateNotFoundError(DocsFetcherError):
    code = ErrorCode.CRATE_NOT_FOUND
    suggestion = "Check the crate name and version on crates.io; docs.rs has no build for it."

    def __init__(self, crate_name: str, version: str | None = None) -> None:
        message = f"Crate '{crate_name}' not found"
        if version:
            message += f" (version {version})"
        super().__init__(message, crate_name=crate_name, version=version)
        self.crate_name = crate_name
        self.version = version


class NetworkError(DocsFetcherError):
    code = ErrorCode.NETWORK_ERROR
    suggestion = "docs.rs may be temporarily unavailable. Try again later."
    recoverable = True

    def __init__(
        self,
        url: str,
        status: int | None = None,
        status_text: str | None = None,
        message: str | None = None,
    ) -> None:
        if message is None:
            reason = f" {status_text}" if status_text else ""
            message = f"HTTP {status}{reason} fetching {url}"
        else:
            message = f"Network error fetching {url}: {message}"
        super().__init__(message, url=url, status=status, status_text=status_text)
        self.url = url
        self.status = status
        self.status_text = status_text


class RequestTimeoutError(DocsFetcherError):
    code = ErrorCode.TIMEOUT
    suggestion = "docs.rs did not answer in time. Retry, or raise the request timeout."
    recoverable = True

    def __init__(self, url: str, timeout_ms: int) -> None:
        super().__init__(f"Request timeout after {timeout_ms}ms", url=url, timeout_ms=timeout_ms)
        self.url = url
        self.timeout_ms = timeout_ms


class DecompressionError(DocsFetcherError):
    code = ErrorCode.DECOMPRESSION_FAILED
    suggestion = "The response body could not be decoded. The encoding may be unsupported."

    def __init__(self, url: str, encoding: str, message: str) -> None:
        super().__init__(
            f"Failed to decompress {encoding} response from {url}: {message}",
            url=url,
            encoding=encoding,
        )
        self.url = url
        self.encoding = encoding


class JSONParseError(DocsFetcherError):
    code = ErrorCode.JSON_PARSE_FAILED
    suggestion = "docs.rs returned a malformed rustdoc JSON document."

    def __init__(self, text: str, cause: Exception | str, url: str) -> None:
        super().__init__(f"Failed to parse JSON from {url}: {cause}", url=url)
        self.url = url
        self.snippet = text[:_SNIPPET_LENGTH]
        self.cause = cause


class CacheValidationError(DocsFetcherError):
    code = ErrorCode.CACHE_QUERY_REJECTED
    suggestion = "Only a single read-only SELECT statement is accepted."


class InvalidInputError(DocsFetcherError):
    code = ErrorCode.INVALID_INPUT
    suggestion = "Check the tool arguments against the documented limits and try again."


def log_error(error: BaseException, **context: Any) -> None:
    """Emit a structured diagnostic event for ``error``."""
    if isinstance(error, DocsFetcherError):
        log.warning(
            "docs_fetch_error",
            code=error.code,
            error_type=type(error).__name__,
            message=error.message,
            recoverable=error.recoverable,
            **{**error.context, **{k: v for k, v in context.items() if v is not None}},
        )
        return
    log.error(
        "docs_fetch_unexpected_error",
        error_type=type(error).__name__,
        message=str(error),
        **{k: v for k, v in context.items() if v is not None},
    )
