"""Unit tests for utility functions."""

import threading
import time

import pytest

from contentsync.utils import (
    format_size,
    get_oldest_timestamp,
    is_valid_path,
    matches_path_filter,
    normalize_path,
    now_iso,
    parse_iso_timestamp,
    run_bounded,
)


class TestIsValidPath:
    """Tests for is_valid_path function."""

    @pytest.mark.parametrize(
        "path", ["/css/main.css", "css/main.css", "/dxdam/a b/c.jpg"]
    )
    def test_valid(self, path):
        assert is_valid_path(path, windows=False)

    @pytest.mark.parametrize(
        "path",
        [
            None,
            "",
            "/",
            "//",
            "http://example.com/a.css",
            "/https://example.com/a.css",
            "file:/etc/passwd",
            "/a\x00b.css",
        ],
    )
    def test_invalid(self, path):
        assert not is_valid_path(path, windows=False)

    def test_windows_characters(self):
        """Test characters Windows does not allow in file names."""
        assert not is_valid_path("/css/a<b>.css", windows=True)
        assert not is_valid_path("/css/a|b.css", windows=True)
        assert is_valid_path("/css/a<b>.css", windows=False)


class TestPathHelpers:
    """Tests for normalize_path and matches_path_filter."""

    def test_normalize_path(self):
        assert normalize_path("css/main.css") == "/css/main.css"
        assert normalize_path("//css/main.css") == "/css/main.css"
        assert normalize_path("css\\main.css") == "/css/main.css"

    @pytest.mark.parametrize(
        "path,pattern,expected",
        [
            ("/css/main.css", "/css", True),
            ("/css/main.css", "css/", True),
            ("/js/app.js", "/css", False),
            ("/css/main.css", "/css/*.css", True),
            ("/css/main.js", "/css/*.css", False),
            ("/dxdam/a/b.jpg", "/dxdam/?/b.jpg", True),
        ],
    )
    def test_matches_path_filter(self, path, pattern, expected):
        assert matches_path_filter(path, pattern) is expected


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_parse_z_suffix(self):
        parsed = parse_iso_timestamp("2025-01-15T10:30:00.000Z")
        assert parsed is not None
        assert parsed.utcoffset().total_seconds() == 0
        assert parsed.hour == 10

    def test_parse_naive_is_utc(self):
        assert parse_iso_timestamp("2025-01-15T10:30:00").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_invalid(self, value):
        assert parse_iso_timestamp(value) is None

    def test_now_iso_parses(self):
        assert parse_iso_timestamp(now_iso()) is not None

    def test_oldest(self):
        assert (
            get_oldest_timestamp(
                ["2024-03-01T00:00:00Z", "2024-01-01T00:00:00Z", "2024-02-01T00:00:00Z"]
            )
            == "2024-01-01T00:00:00Z"
        )

    def test_oldest_with_missing_value(self):
        """Test a missing timestamp yields None."""
        assert get_oldest_timestamp(["2024-03-01T00:00:00Z", None]) is None
        assert get_oldest_timestamp([]) is None


class TestFormatSize:
    """Tests for format_size function."""

    def test_format_size(self):
        assert format_size(256) == "256 B"
        assert format_size(1536) == "1.5 KB"
        assert format_size(5 * 1024 * 1024) == "5.0 MB"
        assert format_size(2 * 1024 * 1024 * 1024) == "2.0 GB"


class TestRunBounded:
    """Tests for bounded concurrent execution."""

    def test_results_in_submission_order(self):
        """Test outcomes keep task order regardless of completion order."""

        def task(i):
            def run():
                time.sleep(0.01 * (5 - i))
                return i

            return run

        outcomes = run_bounded([task(i) for i in range(5)], max_workers=5)

        assert outcomes == [(True, i) for i in range(5)]

    def test_failures_are_captured(self):
        def fail():
            raise ValueError("boom")

        outcomes = run_bounded([lambda: 1, fail, lambda: 3], max_workers=2)

        assert outcomes[0] == (True, 1)
        assert outcomes[1][0] is False
        assert isinstance(outcomes[1][1], ValueError)
        assert outcomes[2] == (True, 3)

    def test_concurrency_is_bounded(self):
        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        def run():
            with lock:
                state["running"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.02)
            with lock:
                state["running"] -= 1

        run_bounded([run] * 8, max_workers=3)

        assert state["peak"] <= 3

    def test_empty(self):
        assert run_bounded([], max_workers=4) == []
