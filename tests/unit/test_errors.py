"""Unit tests for docsrs_mcp.errors."""

from __future__ import annotations

from structlog.testing import capture_logs

from docsrs_mcp.errors import (
    CacheValidationError,
    CrateNotFoundError,
    DecompressionError,
    ErrorCode,
    JSONParseError,
    NetworkError,
    RequestTimeoutError,
    log_error,
)

URL = "https://docs.rs/crate/serde/latest/json"


class TestMessages:
    def test_crate_not_found_without_version(self) -> None:
        error = CrateNotFoundError("serde")
        assert str(error) == "Crate 'serde' not found"
        assert error.recoverable is False

    def test_crate_not_found_with_version(self) -> None:
        error = CrateNotFoundError("serde", "9.9.9")
        assert str(error).startswith("Crate 'serde' not found")
        assert "9.9.9" in str(error)

    def test_network_error_from_status(self) -> None:
        error = NetworkError(URL, 503, "Service Unavailable")
        assert str(error) == f"HTTP 503 Service Unavailable fetching {URL}"
        assert error.status == 503
        assert error.recoverable is True

    def test_network_error_from_message(self) -> None:
        error = NetworkError(URL, message="Connection refused")
        assert str(error) == f"Network error fetching {URL}: Connection refused"
        assert error.status is None

    def test_timeout(self) -> None:
        error = RequestTimeoutError(URL, 50)
        assert str(error) == "Request timeout after 50ms"
        assert error.code == ErrorCode.TIMEOUT

    def test_json_parse_error_truncates_snippet(self) -> None:
        error = JSONParseError("x" * 1000, "bad", URL)
        assert len(error.snippet) == 200


class TestToDict:
    def test_envelope(self) -> None:
        result = CacheValidationError("Only SELECT queries are allowed").to_dict()
        assert result == {
            "error": {
                "code": ErrorCode.CACHE_QUERY_REJECTED,
                "message": "Only SELECT queries are allowed",
                "suggestion": CacheValidationError.suggestion,
                "recoverable": False,
            }
        }


class TestLogError:
    def test_taxonomy_error_logged_with_context(self) -> None:
        with capture_logs() as logs:
            log_error(DecompressionError(URL, "zstd", "boom"), crate_name="serde")
        assert len(logs) == 1
        event = logs[0]
        assert event["event"] == "docs_fetch_error"
        assert event["code"] == ErrorCode.DECOMPRESSION_FAILED
        assert event["encoding"] == "zstd"
        assert event["url"] == URL
        assert event["crate_name"] == "serde"
        assert event["log_level"] == "warning"

    def test_unexpected_error_logged(self) -> None:
        with capture_logs() as logs:
            log_error(RuntimeError("kaboom"), url=URL)
        assert logs[0]["event"] == "docs_fetch_unexpected_error"
        assert logs[0]["error_type"] == "RuntimeError"
        assert logs[0]["log_level"] == "error"

    def test_none_context_dropped(self) -> None:
        with capture_logs() as logs:
            log_error(CrateNotFoundError("serde"), version=None)
        assert "version" not in logs[0]
