"""Job-based instrumentation stream.

A ``Stream`` is the process-wide event sink. Each request opens a ``Job`` on it,
emits events against that job, and completes it exactly once with a
``CompletionStatus``. Sinks receive key-value records and must tolerate calls
from many threads at once.
"""

from __future__ import annotations

import enum
from threading import Lock
from time import perf_counter
from typing import Any, Protocol

import structlog

from corsproxy.observability.metrics import InMemoryMetrics


class CompletionStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


class JobAlreadyCompleted(RuntimeError):
    pass


class Sink(Protocol):
    def emit_event(self, job: str | None, event: str, kvs: dict[str, Any]) -> None: ...

    def emit_event_err(self, job: str | None, event: str, err: BaseException, kvs: dict[str, Any]) -> None: ...

    def emit_complete(self, job: str, status: CompletionStatus, elapsed_ms: float, kvs: dict[str, Any]) -> None: ...


class StructlogSink:
    """Writes every record as a structured log line."""

    def __init__(self, logger_name: str = "health") -> None:
        self._log = structlog.get_logger(logger_name)

    def emit_event(self, job: str | None, event: str, kvs: dict[str, Any]) -> None:
        self._log.info(event, job=job, **kvs)

    def emit_event_err(self, job: str | None, event: str, err: BaseException, kvs: dict[str, Any]) -> None:
        self._log.error(event, job=job, err=str(err), err_type=err.__class__.__name__, **kvs)

    def emit_complete(self, job: str, status: CompletionStatus, elapsed_ms: float, kvs: dict[str, Any]) -> None:
        log = self._log.info if status is CompletionStatus.SUCCESS else self._log.warning
        log("job.complete", job=job, status=status.value, elapsed_ms=round(elapsed_ms, 2), **kvs)


class MetricsSink:
    def __init__(self, metrics: InMemoryMetrics | None = None) -> None:
        self.metrics = metrics or InMemoryMetrics()

    def emit_event(self, job: str | None, event: str, kvs: dict[str, Any]) -> None:
        return None

    def emit_event_err(self, job: str | None, event: str, err: BaseException, kvs: dict[str, Any]) -> None:
        self.metrics.observe_error_event(event)

    def emit_complete(self, job: str, status: CompletionStatus, elapsed_ms: float, kvs: dict[str, Any]) -> None:
        self.metrics.observe_job(status.value, elapsed_ms)


class Stream:
    def __init__(self, sinks: list[Sink] | None = None) -> None:
        self.sinks: list[Sink] = list(sinks or [])

    def add_sink(self, sink: Sink) -> None:
        self.sinks.append(sink)

    def new_job(self, name: str) -> "Job":
        return Job(self, name)

    def event(self, event: str, **kvs: Any) -> None:
        for sink in self.sinks:
            sink.emit_event(None, event, kvs)

    def event_err(self, event: str, err: BaseException, **kvs: Any) -> None:
        for sink in self.sinks:
            sink.emit_event_err(None, event, err, kvs)


class Job:
    """Tracking handle for one unit of work."""

    def __init__(self, stream: Stream, name: str) -> None:
        self.stream = stream
        self.name = name
        self.status: CompletionStatus | None = None
        self._start = perf_counter()
        self._lock = Lock()

    @property
    def completed(self) -> bool:
        return self.status is not None

    def event(self, event: str, **kvs: Any) -> None:
        for sink in self.stream.sinks:
            sink.emit_event(self.name, event, kvs)

    def event_err(self, event: str, err: BaseException, **kvs: Any) -> None:
        for sink in self.stream.sinks:
            sink.emit_event_err(self.name, event, err, kvs)

    def complete(self, status: CompletionStatus, **kvs: Any) -> None:
        with self._lock:
            if self.status is not None:
                raise JobAlreadyCompleted(f"job {self.name!r} already completed as {self.status.value}")
            self.status = status
        elapsed_ms = (perf_counter() - self._start) * 1000.0
        for sink in self.stream.sinks:
            sink.emit_complete(self.name, status, elapsed_ms, kvs)


def new_stream(metrics: InMemoryMetrics | None = None) -> Stream:
    """Stream writing to structlog and to an in-memory metrics snapshot."""

    return Stream([StructlogSink(), MetricsSink(metrics)])


def metrics_of(stream: Stream) -> InMemoryMetrics | None:
    for sink in stream.sinks:
        if isinstance(sink, MetricsSink):
            return sink.metrics
    return None
