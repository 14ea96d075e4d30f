"""
Unit tests for call statistics.
"""

import pytest

from avantis_client.monitoring import PerformanceMonitor, tracked

LISTING_URL = "https://socket-api-pub.avantisfi.com/socket-api/v1/data"


class TestPerformanceMonitor:
    """Test recording and summaries."""

    def test_record_call_updates_totals(self):
        monitor = PerformanceMonitor()

        monitor.record_call("fetch_listing", LISTING_URL, True, 10.0)
        monitor.record_call("fetch_listing", LISTING_URL, False, 30.0)

        stats = monitor.statistics
        assert stats.total_calls == 2
        assert stats.failed_calls == 1
        assert stats.avg_duration_ms == pytest.approx(20.0)
        assert stats.max_duration_ms == 30.0

        summary = monitor.get_operation_stats("fetch_listing")
        assert summary["count"] == 2
        assert summary["success_rate"] == pytest.approx(0.5)

    def test_unknown_operation(self):
        assert PerformanceMonitor().get_operation_stats("fetch_prices")["count"] == 0

    def test_target_stats(self):
        monitor = PerformanceMonitor()
        monitor.record_call("getOpeningFee", "0xabc", True, 1.0)
        monitor.record_call("getClosingFee", "0xabc", True, 1.0)
        monitor.record_call("fetch_listing", LISTING_URL, True, 1.0)

        targets = monitor.get_target_stats()
        assert targets["0xabc"].total_calls == 2
        assert targets[LISTING_URL].total_calls == 1

    def test_history_is_bounded(self):
        monitor = PerformanceMonitor(max_history=2)
        for i in range(3):
            monitor.record_call(f"op{i}", "t", True, 1.0)

        assert [c.operation for c in monitor.get_recent_calls()] == ["op1", "op2"]

    def test_error_rate(self):
        monitor = PerformanceMonitor()
        assert monitor.get_error_rate() == 0.0

        monitor.record_call("fetch_prices", "hermes", False, 1.0)
        monitor.record_call("fetch_prices", "hermes", True, 1.0)
        assert monitor.get_error_rate() == pytest.approx(0.5)


class TestTracking:
    """Test the timing context managers."""

    @pytest.mark.asyncio
    async def test_track_records_success(self):
        monitor = PerformanceMonitor()

        async with monitor.track("fetch_prices", "hermes"):
            pass

        assert monitor.statistics.successful_calls == 1

    @pytest.mark.asyncio
    async def test_track_records_failure_and_reraises(self):
        monitor = PerformanceMonitor()

        with pytest.raises(ValueError):
            async with monitor.track("fetch_prices", "hermes"):
                raise ValueError("bad payload")

        assert monitor.statistics.failed_calls == 1

    @pytest.mark.asyncio
    async def test_tracked_without_monitor(self):
        async with tracked(None, "fetch_listing", LISTING_URL):
            result = 1

        assert result == 1
