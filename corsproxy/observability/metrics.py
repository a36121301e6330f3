from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any


@dataclass
class _LatencyAgg:
    count: int = 0
    sum_ms: float = 0.0
    max_ms: float = 0.0

    def observe(self, elapsed_ms: float) -> None:
        self.count += 1
        self.sum_ms += float(elapsed_ms)
        if elapsed_ms > self.max_ms:
            self.max_ms = float(elapsed_ms)


class InMemoryMetrics:
    """Thread-safe, process-local metrics (resets on restart)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.jobs_total: int = 0
        self.jobs_by_status: Counter[str] = Counter()
        self.error_events: Counter[str] = Counter()
        self.job_ms = _LatencyAgg()

    def observe_job(self, status: str, elapsed_ms: float) -> None:
        with self._lock:
            self.jobs_total += 1
            self.jobs_by_status[status] += 1
            self.job_ms.observe(elapsed_ms)

    def observe_error_event(self, event: str) -> None:
        with self._lock:
            self.error_events[event] += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": {
                    "jobs_total": self.jobs_total,
                    "jobs_by_status": dict(self.jobs_by_status),
                    "error_events": dict(self.error_events),
                },
                "latency_ms": {
                    "job_ms": asdict(self.job_ms),
                },
            }

    def reset(self) -> None:
        with self._lock:
            self.jobs_total = 0
            self.jobs_by_status = Counter()
            self.error_events = Counter()
            self.job_ms = _LatencyAgg()
