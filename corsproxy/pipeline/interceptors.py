from __future__ import annotations

import json
import uuid
from time import perf_counter

import structlog

from corsproxy.db.node_store import NodeStore
from corsproxy.errors import HandlerFault, StoreError
from corsproxy.observability.health import CompletionStatus, Stream
from corsproxy.pipeline.chain import Interceptor, Next
from corsproxy.pipeline.context import ProxyRequest, RequestContext, ResponseWriter

ACCESS_CONTROL_ALLOW_ORIGIN = "*"
ACCESS_CONTROL_ALLOW_HEADERS = "Origin, X-Requested-With, Content-Type, Accept"


def error_envelope(message: str) -> bytes:
    return json.dumps({"error": message}, separators=(",", ":")).encode("utf-8")


def instrumentation(stream: Stream) -> Interceptor:
    """Open a job per request and complete it once the chain has unwound."""

    def _instrumentation(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter, next_: Next) -> None:
        ctx.job = stream.new_job(request.resource)
        try:
            next_()
        except Exception as exc:  # noqa: BLE001 - converted into the error envelope below
            ctx.fail(HandlerFault(exc))
            ctx.job.event_err(HandlerFault.event, exc)

        if ctx.error is None:
            ctx.job.complete(CompletionStatus.SUCCESS)
            return

        # Once a status is committed the response belongs to whoever wrote it.
        if not writer.headers_sent:
            writer.set_header("Content-Type", "application/json")
            writer.write_header(500)
            writer.write(error_envelope(str(ctx.error)))
        ctx.job.complete(CompletionStatus.ERROR, error=str(ctx.error))

    return _instrumentation


def request_logging(logger_name: str = "access") -> Interceptor:
    def _request_logging(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter, next_: Next) -> None:
        request_id = str(uuid.uuid4())
        ctx.request_id = request_id
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            path=request.path,
            method=request.method,
        )
        writer.set_header("X-Request-ID", request_id)

        start = perf_counter()
        try:
            next_()
        finally:
            elapsed_ms = (perf_counter() - start) * 1000.0
            # The error envelope is written further out, so a failed request
            # has no status yet at this point.
            structlog.get_logger(logger_name).info(
                "http_request",
                status_code=writer.status,
                error=str(ctx.error) if ctx.error else None,
                elapsed_ms=round(elapsed_ms, 2),
            )
            structlog.contextvars.clear_contextvars()

    return _request_logging


def error_display(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter, next_: Next) -> None:
    """Turn an exception from the inner layers into a generic 500."""

    try:
        next_()
    except Exception as exc:  # noqa: BLE001 - a faulting handler must not take the worker down
        structlog.get_logger("pipeline").exception("handler_fault", resource=request.resource)
        ctx.fail(HandlerFault(exc))
        if ctx.job is not None:
            ctx.job.event_err(HandlerFault.event, exc)
        if not writer.headers_sent:
            writer.set_header("Content-Type", "application/json")
            writer.write_header(500)
            writer.write(error_envelope("Internal Server Error"))


def cors(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter, next_: Next) -> None:
    writer.set_header("Access-Control-Allow-Origin", ACCESS_CONTROL_ALLOW_ORIGIN)
    writer.set_header("Access-Control-Allow-Headers", ACCESS_CONTROL_ALLOW_HEADERS)
    next_()


def node_state(store: NodeStore) -> Interceptor:
    """Persist the node status observed by the handler, after it has returned."""

    def _node_state(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter, next_: Next) -> None:
        next_()

        if ctx.error is not None or ctx.observed_key is None or ctx.observed_status is None:
            return

        try:
            result = store.upsert(ctx.observed_key, ctx.observed_status)
        except StoreError as exc:
            if ctx.job is not None:
                ctx.job.event_err(exc.event, exc, ip=ctx.observed_key)
            return

        if ctx.job is not None:
            ctx.job.event(
                "update_node_state.upserted",
                ip=result.key,
                state=result.state,
                was_insert=result.was_insert,
            )

    return _node_state
