"""Unit tests for SourceHealth."""

from unittest.mock import patch

from ethprice.src.SourceHealth import SourceHealth


class TestSourceHealthInit:
    """Test SourceHealth initialization."""

    def test_init_with_sources(self) -> None:
        """Sources should be tracked from init."""
        health = SourceHealth(["a", "b", "c"])
        assert health.sources == ["a", "b", "c"]
        assert all(health.get_source_status(s) is not None for s in "abc")

    def test_init_empty_sources(self) -> None:
        """Empty sources list should work."""
        health = SourceHealth([])
        assert health.sources == []
        assert health.summary() == ""

    def test_initial_status(self) -> None:
        """Initial status should have zero failures."""
        status = SourceHealth(["a"]).get_source_status("a")

        assert status is not None
        assert status.consecutive_failures == 0
        assert status.total_failures == 0
        assert status.total_successes == 0
        assert status.last_error is None


class TestSourceHealthFailures:
    """Test failure recording."""

    def test_consecutive_failures(self) -> None:
        """Each failure should bump the consecutive count."""
        health = SourceHealth(["a"])
        assert health.record_failure("a", "timeout") == 1
        assert health.record_failure("a", "HTTP 503: unavailable") == 2

        status = health.get_source_status("a")
        assert status.total_failures == 2
        assert status.last_error == "HTTP 503: unavailable"

    def test_long_reason_truncated(self) -> None:
        """Stored reasons should be capped at 200 characters."""
        health = SourceHealth(["a"])
        health.record_failure("a", "x" * 500)
        assert len(health.get_source_status("a").last_error) == 200

    def test_failure_never_removes_source(self) -> None:
        """Failures are bookkeeping only; the source stays tracked."""
        health = SourceHealth(["a"])
        for _ in range(10):
            health.record_failure("a", "down")
        assert health.sources == ["a"]


class TestSourceHealthSuccess:
    """Test success recording."""

    @patch("ethprice.src.SourceHealth.time.time")
    def test_success_resets_consecutive(self, mock_time) -> None:
        """Success should reset the consecutive failure count."""
        mock_time.return_value = 1000.0
        health = SourceHealth(["a"])
        health.record_failure("a", "down")
        health.record_failure("a", "down")
        health.record_success("a", latency=0.25)

        status = health.get_source_status("a")
        assert status.consecutive_failures == 0
        assert status.total_failures == 2
        assert status.total_successes == 1
        assert status.last_success_at == 1000.0
        assert status.last_latency == 0.25


class TestSourceHealthQueries:
    """Test query helpers."""

    def test_unknown_source(self) -> None:
        """Unknown sources have no status until recorded."""
        health = SourceHealth(["a"])
        assert health.get_source_status("zzz") is None

        health.record_failure("zzz", "down")
        assert health.sources == ["a", "zzz"]
        assert health.get_source_status("zzz").total_failures == 1

    def test_summary(self) -> None:
        """Summary lists successes/failures and marks failing sources."""
        health = SourceHealth(["a", "b"])
        health.record_success("a")
        health.record_failure("b", "down")
        health.record_failure("b", "down")
        assert health.summary() == "a=1/0 b=0/2!"

