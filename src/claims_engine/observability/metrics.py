"""Decisioning metrics: gate triggers, verdicts, classifier latency and failures.

Thread-safe in-process counters. The engine runs claims on independent worker
threads, so every mutation happens under one lock.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from claims_engine.config.settings import get_metrics_window

logger = logging.getLogger(__name__)


def _percentile(values: list[float], p: float) -> float:
    """Calculate the p-th percentile of values."""
    if not values:
        return 0.0
    sorted_values = sorted(values)
    k = (len(sorted_values) - 1) * p / 100
    f = int(k)
    c = f + 1
    if c >= len(sorted_values):
        return sorted_values[-1]
    return sorted_values[f] + (k - f) * (sorted_values[c] - sorted_values[f])


@dataclass
class ClassifierCallMetric:
    """Metrics for a single classifier call."""

    timestamp: datetime
    claim_id: str
    model: str
    latency_ms: float
    status: str
    input_tokens: int = 0
    output_tokens: int = 0
    error: str | None = None


@dataclass
class EngineMetrics:
    """Collects counters and classifier call timings for the decisioning pipeline.

    Call totals are kept as running sums. Only the most recent window_size calls are
    retained for latency percentiles.
    """

    window_size: int = 1000
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _counters: Counter = field(default_factory=Counter)
    _verdicts: Counter = field(default_factory=Counter)
    _calls: deque = field(init=False, repr=False)
    _total_calls: int = 0
    _failed_calls: int = 0
    _total_tokens: int = 0

    def __post_init__(self) -> None:
        self._calls = deque(maxlen=self.window_size)

    def increment(self, name: str, amount: int = 1) -> None:
        """Bump a named counter (gate_triggered, race_lost, verdict_coerced, ...)."""
        with self._lock:
            self._counters[name] += amount

    def record_verdict(self, verdict: str) -> None:
        with self._lock:
            self._verdicts[verdict] += 1

    def record_classifier_call(
        self,
        claim_id: str,
        model: str,
        latency_ms: float,
        status: str = "success",
        input_tokens: int = 0,
        output_tokens: int = 0,
        error: str | None = None,
    ) -> None:
        """Record one classifier round trip."""
        metric = ClassifierCallMetric(
            timestamp=datetime.now(timezone.utc),
            claim_id=claim_id,
            model=model,
            latency_ms=latency_ms,
            status=status,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            error=error,
        )
        with self._lock:
            self._calls.append(metric)
            self._total_calls += 1
            self._total_tokens += input_tokens + output_tokens
            if status != "success":
                self._failed_calls += 1
        logger.debug(
            "[classifier_metric] claim_id=%s, model=%s, latency=%.0fms, status=%s",
            claim_id,
            model,
            latency_ms,
            status,
        )

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of all counters and classifier latency percentiles."""
        with self._lock:
            latencies = [c.latency_ms for c in self._calls]
            return {
                "counters": dict(self._counters),
                "verdicts": dict(self._verdicts),
                "classifier_calls": self._total_calls,
                "classifier_failures": self._failed_calls,
                "classifier_tokens": self._total_tokens,
                "avg_latency_ms": sum(latencies) / len(latencies) if latencies else 0.0,
                "p50_latency_ms": _percentile(latencies, 50),
                "p95_latency_ms": _percentile(latencies, 95),
            }


# Global metrics instance
_global_metrics: EngineMetrics | None = None
_metrics_lock = threading.Lock()


def get_metrics() -> EngineMetrics:
    """Get the global EngineMetrics instance."""
    global _global_metrics
    with _metrics_lock:
        if _global_metrics is None:
            _global_metrics = EngineMetrics(window_size=get_metrics_window())
        return _global_metrics


def reset_metrics() -> None:
    """Drop the global instance (tests)."""
    global _global_metrics
    with _metrics_lock:
        _global_metrics = None
