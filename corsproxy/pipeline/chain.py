from __future__ import annotations

from collections.abc import Callable, Sequence

from corsproxy.pipeline.context import ProxyRequest, RequestContext, ResponseWriter

Next = Callable[[], None]
Interceptor = Callable[[RequestContext, ProxyRequest, ResponseWriter, Next], None]
Handler = Callable[[RequestContext, ProxyRequest, ResponseWriter], None]


class Pipeline:
    """
    An ordered list of interceptors around one handler.

    Interceptors run outermost first. Each one receives ``next_``: calling it
    runs the rest of the chain, not calling it short-circuits everything inside.
    """

    def __init__(self, interceptors: Sequence[Interceptor], handler: Handler) -> None:
        self.interceptors = list(interceptors)
        self.handler = handler

    def run(self, request: ProxyRequest) -> tuple[RequestContext, ResponseWriter]:
        ctx = RequestContext()
        writer = ResponseWriter()
        self._dispatch(0, ctx, request, writer)
        return ctx, writer

    def _dispatch(self, index: int, ctx: RequestContext, request: ProxyRequest, writer: ResponseWriter) -> None:
        if index == len(self.interceptors):
            self.handler(ctx, request, writer)
            return

        called = False

        def next_() -> None:
            nonlocal called
            if called:
                raise RuntimeError(f"interceptor {index} called next() twice")
            called = True
            self._dispatch(index + 1, ctx, request, writer)

        self.interceptors[index](ctx, request, writer, next_)
