from __future__ import annotations

from typing import Any, Callable

from starlette.datastructures import MutableHeaders

from corsproxy.pipeline.interceptors import ACCESS_CONTROL_ALLOW_HEADERS, ACCESS_CONTROL_ALLOW_ORIGIN


class CORSHeadersMiddleware:
    """Stamps the CORS headers on every HTTP response, routed or not."""

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        async def send_wrapper(message: dict[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["Access-Control-Allow-Origin"] = ACCESS_CONTROL_ALLOW_ORIGIN
                headers["Access-Control-Allow-Headers"] = ACCESS_CONTROL_ALLOW_HEADERS

            await send(message)

        await self.app(scope, receive, send_wrapper)
