"""Unit tests for docsrs_mcp.urls."""

from __future__ import annotations

import pytest

from docsrs_mcp.urls import build_json_url


class TestBuildJsonUrl:
    def test_defaults_to_latest(self) -> None:
        assert build_json_url("test-crate") == "https://docs.rs/crate/test-crate/latest/json"

    def test_with_version(self) -> None:
        assert (
            build_json_url("test-crate", "1.0.0")
            == "https://docs.rs/crate/test-crate/1.0.0/json"
        )

    def test_with_target(self) -> None:
        assert (
            build_json_url("test-crate", "1.0.0", "x86_64-pc-windows-msvc")
            == "https://docs.rs/crate/test-crate/1.0.0/x86_64-pc-windows-msvc/json"
        )

    def test_target_without_version(self) -> None:
        assert (
            build_json_url("tokio", target="wasm32-unknown-unknown")
            == "https://docs.rs/crate/tokio/latest/wasm32-unknown-unknown/json"
        )

    def test_with_format_version(self) -> None:
        assert build_json_url("serde", format_version=39) == (
            "https://docs.rs/crate/serde/latest/json/39"
        )

    def test_all_segments(self) -> None:
        assert build_json_url("serde", "1.0.219", "i686-pc-windows-msvc", 39) == (
            "https://docs.rs/crate/serde/1.0.219/i686-pc-windows-msvc/json/39"
        )

    def test_zero_format_version_omitted(self) -> None:
        assert build_json_url("serde", format_version=0) == (
            "https://docs.rs/crate/serde/latest/json"
        )

    def test_empty_version_falls_back_to_latest(self) -> None:
        assert build_json_url("serde", "") == "https://docs.rs/crate/serde/latest/json"

    def test_custom_base_url_trailing_slash(self) -> None:
        assert build_json_url("serde", base_url="http://mirror.local/") == (
            "http://mirror.local/crate/serde/latest/json"
        )

    def test_deterministic(self) -> None:
        assert build_json_url("serde", "1.0.0") == build_json_url("serde", "1.0.0")

    def test_empty_crate_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_json_url("")
