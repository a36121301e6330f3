from __future__ import annotations

from corsproxy.errors import ParseError, ProxyError
from corsproxy.models.schemas import UpstreamResponse
from corsproxy.pipeline.chain import Handler
from corsproxy.pipeline.context import ProxyRequest, RequestContext, ResponseWriter
from corsproxy.services.forwarder import Forwarder


def _record(ctx: RequestContext, err: ProxyError) -> None:
    ctx.fail(err)
    if ctx.job is not None:
        ctx.job.event_err(err.event, err)


def _relay(writer: ResponseWriter, upstream: UpstreamResponse) -> None:
    if upstream.content_type:
        writer.set_header("Content-Type", upstream.content_type)
    writer.write_header(200)
    writer.write(upstream.body)


def proxy_url_handler(forwarder: Forwarder) -> Handler:
    """Relay an arbitrary https target named by the ``url`` param."""

    def _handler(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter) -> None:
        try:
            raw = request.params.get("url", "")
            if not raw.strip():
                raise ParseError("missing target url")
            upstream = forwarder.fetch(forwarder.target_url(raw))
        except ProxyError as err:
            _record(ctx, err)
            return
        _relay(writer, upstream)

    return _handler


def proxy_status_handler(forwarder: Forwarder) -> Handler:
    """Relay a node's ``/status`` body and note the status it reported."""

    def _handler(ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter) -> None:
        ip = request.params.get("ip", "")
        try:
            upstream, status = forwarder.fetch_status(ip)
        except ProxyError as err:
            _record(ctx, err)
            return
        ctx.observe(ip, status.status)
        _relay(writer, upstream)

    return _handler
