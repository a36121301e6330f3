from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from datetime import datetime, timedelta
from threading import Lock
from typing import Any

import httpx
import pytest
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine

from corsproxy.config import Settings, get_settings
from corsproxy.db.node_store import NodeStore
from corsproxy.main import create_app
from corsproxy.observability.health import CompletionStatus, MetricsSink, Stream
from corsproxy.services.forwarder import Forwarder


class FakeClock:
    """Strictly increasing clock; every call advances by ``step``."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)
        self.step = step
        self.calls: list[datetime] = []
        self._lock = Lock()

    def __call__(self) -> datetime:
        with self._lock:
            value = self.now
            self.now = self.now + self.step
            self.calls.append(value)
            return value


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.completions: list[dict[str, Any]] = []

    def emit_event(self, job: str | None, event: str, kvs: dict[str, Any]) -> None:
        self.events.append({"job": job, "event": event, "err": None, **kvs})

    def emit_event_err(self, job: str | None, event: str, err: BaseException, kvs: dict[str, Any]) -> None:
        self.events.append({"job": job, "event": event, "err": err, **kvs})

    def emit_complete(self, job: str, status: CompletionStatus, elapsed_ms: float, kvs: dict[str, Any]) -> None:
        self.completions.append({"job": job, "status": status, **kvs})

    def event_names(self) -> list[str]:
        return [e["event"] for e in self.events]


class UpstreamStub:
    """Canned upstream responses keyed by host, port and path."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, int | None, str], Callable[[], httpx.Response] | Exception] = {}
        self.requests: list[httpx.Request] = []

    @staticmethod
    def _key(url: httpx.URL) -> tuple[str, int | None, str]:
        return (url.host, url.port, url.path or "/")

    def register(self, url: str, status_code: int = 200, body: Any = b"", content_type: str = "application/json") -> None:
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.routes[self._key(httpx.URL(url))] = lambda: httpx.Response(
            status_code, content=body, headers={"Content-Type": content_type}
        )

    def register_redirect(self, url: str, location: str, status_code: int = 301) -> None:
        self.routes[self._key(httpx.URL(url))] = lambda: httpx.Response(status_code, headers={"Location": location})

    def register_error(self, url: str, exc: Exception) -> None:
        self.routes[self._key(httpx.URL(url))] = exc

    def register_response(self, url: str, response: httpx.Response) -> None:
        self.routes[self._key(httpx.URL(url))] = lambda: response

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.routes.get(self._key(request.url))
        if outcome is None:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome()


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("CORS_PROXY_DB_FILE", str(tmp_path / "corsproxy.db"))
    get_settings.cache_clear()
    structlog.contextvars.clear_contextvars()

    yield

    structlog.contextvars.clear_contextvars()
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def forwarder(upstream: UpstreamStub) -> Forwarder:
    fwd = Forwarder(timeout=15.0, transport=httpx.MockTransport(upstream.handle))
    yield fwd
    fwd.close()


@pytest.fixture
def recorder() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def stream(recorder: RecordingSink) -> Stream:
    return Stream([recorder, MetricsSink()])


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'nodes.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine, clock: FakeClock) -> NodeStore:
    node_store = NodeStore(engine, key_shape="address_state", clock=clock)
    node_store.init_schema()
    return node_store


@pytest.fixture
async def url_client(forwarder: Forwarder, stream: Stream) -> AsyncIterator[AsyncClient]:
    app = create_app(Settings(mode="url"), forwarder=forwarder, stream=stream)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def status_client(forwarder: Forwarder, stream: Stream, store: NodeStore) -> AsyncIterator[AsyncClient]:
    app = create_app(Settings(mode="status"), forwarder=forwarder, stream=stream, store=store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
