"""In-process counters and timings for the bot."""
from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

HISTOGRAM_WINDOW = 100


class MetricsCollector:
    """Thread-safe metrics collector with in-memory storage."""

    def __init__(self, window: int = HISTOGRAM_WINDOW):
        self._lock = threading.RLock()
        self._counters: dict[str, float] = defaultdict(float)
        self._histograms: dict[str, list[float]] = defaultdict(list)
        self._window = window

    def increment(self, name: str, value: float = 1.0, labels: dict[str, str] | None = None) -> None:
        """Increment a counter metric."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] += value

    def histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        """Record a value in a histogram metric, keeping the last ``window`` values."""
        key = self._make_key(name, labels)
        with self._lock:
            values = self._histograms[key]
            values.append(value)
            if len(values) > self._window:
                del values[: len(values) - self._window]

    @contextmanager
    def timer(self, name: str, labels: dict[str, str] | None = None) -> Generator[None, None, None]:
        """Context manager to time an operation and record as histogram."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self.histogram(f"{name}_duration_ms", elapsed_ms, labels)
            self.increment(f"{name}_count", labels=labels)

    def _make_key(self, name: str, labels: dict[str, str] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0.0)

    def get_histogram_stats(self, name: str, labels: dict[str, str] | None = None) -> dict[str, float]:
        """Get histogram statistics (count, min, max, avg, p50, p95)."""
        key = self._make_key(name, labels)
        with self._lock:
            values = sorted(self._histograms.get(key, []))
        if not values:
            return {}
        count = len(values)
        return {
            "count": count,
            "min": values[0],
            "max": values[-1],
            "avg": sum(values) / count,
            "p50": values[int(count * 0.5)],
            "p95": values[int(count * 0.95)] if count > 1 else values[-1],
        }

    def get_all_metrics(self) -> dict[str, Any]:
        with self._lock:
            counters = dict(self._counters)
            histogram_keys = list(self._histograms.keys())
        histograms = {}
        for key in histogram_keys:
            with self._lock:
                values = sorted(self._histograms.get(key, []))
            if values:
                histograms[key] = {"count": len(values), "avg": sum(values) / len(values)}
        return {
            "counters": counters,
            "histograms": histograms,
            "collected_at": datetime.now(timezone.utc).isoformat(),
        }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


# Global metrics instance
metrics = MetricsCollector()


def record_generation(backend: str, model: str, duration_ms: float, success: bool) -> None:
    """Record one generation backend call."""
    labels = {"backend": backend, "model": model, "success": str(success).lower()}
    metrics.histogram("generation_duration_ms", duration_ms, labels)
    metrics.increment("generation_calls_total", labels=labels)


def record_event(kind: str) -> None:
    """Record one routed inbound event."""
    metrics.increment("events_total", labels={"kind": kind})


def log_summary() -> None:
    snapshot = metrics.get_all_metrics()
    logger.info(
        "Metrics summary: counters=%s histograms=%s",
        snapshot["counters"],
        snapshot["histograms"],
    )
