from __future__ import annotations

from fastapi import APIRouter, Request, Response

from corsproxy.pipeline import Pipeline, ProxyRequest

# Endpoints are plain ``def`` so each request runs on its own worker thread.
status_router = APIRouter(tags=["status"])
url_router = APIRouter(tags=["url"])


def _run(request: Request, params: dict[str, str]) -> Response:
    pipeline: Pipeline = request.app.state.pipeline
    proxy_request = ProxyRequest(
        method=request.method,
        path=request.url.path,
        query=request.url.query,
        params=params,
    )
    _, writer = pipeline.run(proxy_request)
    return Response(content=writer.body, status_code=writer.status or 200, headers=writer.headers)


@status_router.get("/status/{ip}")
def proxy_node_status(ip: str, request: Request) -> Response:
    return _run(request, {"ip": ip})


@url_router.get("/")
def proxy_query_target(request: Request, url: str = "") -> Response:
    return _run(request, {"url": url})


@url_router.get("/{url:path}")
def proxy_path_target(url: str, request: Request) -> Response:
    target = f"{url}?{request.url.query}" if request.url.query else url
    return _run(request, {"url": target})
