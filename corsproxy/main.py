from __future__ import annotations

from fastapi import FastAPI

from corsproxy import __version__
from corsproxy.api.middleware import CORSHeadersMiddleware
from corsproxy.api.proxy import status_router, url_router
from corsproxy.config import Settings, get_settings
from corsproxy.db.node_store import NodeStore
from corsproxy.db.session import get_engine
from corsproxy.observability.health import Stream, metrics_of, new_stream
from corsproxy.observability.logging import configure_logging
from corsproxy.pipeline import build_pipeline
from corsproxy.pipeline.handlers import proxy_status_handler, proxy_url_handler
from corsproxy.services.forwarder import Forwarder


def create_app(
    settings: Settings | None = None,
    *,
    forwarder: Forwarder | None = None,
    store: NodeStore | None = None,
    stream: Stream | None = None,
) -> FastAPI:
    """Wire the proxy for one deployment shape.

    Collaborators are built here (or passed in by tests) and live on
    ``app.state`` for the lifetime of the process.
    """

    settings = settings or get_settings()
    stream = stream or new_stream()
    forwarder = forwarder or Forwarder(timeout=settings.http_timeout, node_status_port=settings.node_status_port)

    if settings.mode == "status":
        if store is None and settings.track_nodes:
            store = NodeStore(get_engine(settings), key_shape=settings.node_key)
        handler = proxy_status_handler(forwarder)
    else:
        store = None
        handler = proxy_url_handler(forwarder)

    app = FastAPI(title="CORS Proxy", version=__version__)
    app.state.settings = settings
    app.state.stream = stream
    app.state.forwarder = forwarder
    app.state.store = store
    app.state.pipeline = build_pipeline(handler, stream=stream, store=store)

    # 404s and 405s never reach the pipeline.
    app.add_middleware(CORSHeadersMiddleware)
    app.include_router(status_router if settings.mode == "status" else url_router)

    @app.on_event("startup")
    def _startup() -> None:
        configure_logging(settings.log_level)
        if store is not None:
            settings.db_path.parent.mkdir(parents=True, exist_ok=True)
            store.init_schema()
        stream.event("server_listening", host=settings.host, port=settings.port, mode=settings.mode)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        metrics = metrics_of(stream)
        if metrics is not None:
            stream.event("metrics_snapshot", **metrics.snapshot())
        forwarder.close()
        if store is not None:
            store.engine.dispose()

    return app
