"""
Call statistics for the Avantis client.

Every external call (pair listing fetch, Hermes price fetch, contract
read) is timed and recorded so callers can see latency and failure
rates per operation and per target.
"""

import time
from collections import defaultdict, deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional


@dataclass(frozen=True)
class CallMetrics:
    """One recorded external call."""
    operation: str
    target: str
    success: bool
    duration_ms: float
    timestamp: float


@dataclass
class Statistics:
    """Running totals over all recorded calls."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    total_duration_ms: float = 0.0
    avg_duration_ms: float = 0.0
    max_duration_ms: float = 0.0

    def update(self, metrics: CallMetrics) -> None:
        self.total_calls += 1
        self.total_duration_ms += metrics.duration_ms
        self.avg_duration_ms = self.total_duration_ms / self.total_calls
        self.max_duration_ms = max(self.max_duration_ms, metrics.duration_ms)
        if metrics.success:
            self.successful_calls += 1
        else:
            self.failed_calls += 1


class PerformanceMonitor:
    """Records external calls and summarizes them by operation and target."""

    def __init__(self, max_history: int = 1000):
        self._statistics = Statistics()
        self._history: deque[CallMetrics] = deque(maxlen=max_history)
        self._by_operation: Dict[str, Statistics] = defaultdict(Statistics)
        self._by_target: Dict[str, Statistics] = defaultdict(Statistics)

    def record_call(self, operation: str, target: str, success: bool, duration_ms: float) -> None:
        """Record a completed call."""
        metrics = CallMetrics(
            operation=operation,
            target=target,
            success=success,
            duration_ms=duration_ms,
            timestamp=time.time(),
        )
        self._statistics.update(metrics)
        self._by_operation[operation].update(metrics)
        self._by_target[target].update(metrics)
        self._history.append(metrics)

    @asynccontextmanager
    async def track(self, operation: str, target: str) -> AsyncIterator[None]:
        """Time the enclosed block and record it as one call.

        The call counts as failed if the block raises; the exception is
        re-raised unchanged.
        """
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            self.record_call(operation, target, success, (time.perf_counter() - start) * 1000)

    @property
    def statistics(self) -> Statistics:
        return self._statistics

    def get_operation_stats(self, operation: str) -> Dict[str, float]:
        """Summary for one operation (``fetch_listing``, ``fetch_prices`` or a contract function)."""
        stats = self._by_operation.get(operation)
        if stats is None:
            return {"count": 0, "avg_duration_ms": 0.0, "max_duration_ms": 0.0, "success_rate": 0.0}
        return {
            "count": stats.total_calls,
            "avg_duration_ms": stats.avg_duration_ms,
            "max_duration_ms": stats.max_duration_ms,
            "success_rate": stats.successful_calls / stats.total_calls,
        }

    def get_target_stats(self) -> Dict[str, Statistics]:
        """Totals per URL or contract address."""
        return dict(self._by_target)

    def get_recent_calls(self, count: int = 10) -> List[CallMetrics]:
        return list(self._history)[-count:]

    def get_error_rate(self, window_seconds: float = 60.0) -> float:
        """Fraction of failed calls within the recent window."""
        cutoff = time.time() - window_seconds
        recent = [c for c in self._history if c.timestamp >= cutoff]
        if not recent:
            return 0.0
        return sum(1 for c in recent if not c.success) / len(recent)


@asynccontextmanager
async def tracked(monitor: Optional[PerformanceMonitor], operation: str, target: str) -> AsyncIterator[None]:
    """``monitor.track`` that does nothing when no monitor is configured."""
    if monitor is None:
        yield
        return
    async with monitor.track(operation, target):
        yield
