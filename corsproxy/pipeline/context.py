from __future__ import annotations

from dataclasses import dataclass, field

from corsproxy.errors import ProxyError
from corsproxy.observability.health import Job


class HeadersAlreadySent(RuntimeError):
    pass


@dataclass(frozen=True)
class ProxyRequest:
    method: str
    path: str
    query: str = ""
    params: dict[str, str] = field(default_factory=dict)

    @property
    def resource(self) -> str:
        return f"{self.path}?{self.query}" if self.query else self.path


@dataclass
class RequestContext:
    """Per-request state, owned by a single pipeline run."""

    job: Job | None = None
    error: ProxyError | None = None
    observed_status: str | None = None
    observed_key: str | None = None
    request_id: str | None = None

    def fail(self, error: ProxyError) -> bool:
        """Record ``error`` unless one is already set. Returns True if recorded."""

        if self.error is not None:
            return False
        self.error = error
        return True

    def observe(self, key: str, status: str) -> None:
        self.observed_key = key
        self.observed_status = status


class ResponseWriter:
    """Buffered response; headers freeze once the status or body is written."""

    def __init__(self) -> None:
        self.status: int | None = None
        self.headers: dict[str, str] = {}
        self._body = bytearray()

    @property
    def headers_sent(self) -> bool:
        return self.status is not None

    @property
    def body_written(self) -> bool:
        return len(self._body) > 0

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def set_header(self, name: str, value: str) -> None:
        if self.headers_sent:
            raise HeadersAlreadySent(f"cannot set {name}: headers already sent")
        self.headers[name] = value

    def write_header(self, status: int) -> None:
        if self.headers_sent:
            return
        self.status = status

    def write(self, data: bytes) -> int:
        self.write_header(200)
        self._body.extend(data)
        return len(data)
