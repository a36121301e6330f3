"""Request pipeline: interceptors wrapped around a single forwarding handler."""

from __future__ import annotations

from corsproxy.db.node_store import NodeStore
from corsproxy.observability.health import Stream
from corsproxy.pipeline.chain import Handler, Interceptor, Pipeline
from corsproxy.pipeline.context import ProxyRequest, RequestContext, ResponseWriter
from corsproxy.pipeline.interceptors import cors, error_display, instrumentation, node_state, request_logging


def build_pipeline(handler: Handler, *, stream: Stream, store: NodeStore | None = None) -> Pipeline:
    interceptors: list[Interceptor] = [
        instrumentation(stream),
        request_logging(),
        error_display,
        cors,
    ]
    if store is not None:
        interceptors.append(node_state(store))
    return Pipeline(interceptors, handler)


__all__ = [
    "Pipeline",
    "ProxyRequest",
    "RequestContext",
    "ResponseWriter",
    "build_pipeline",
]
