"""Outbound side of the proxy: one GET per inbound request.

TLS certificates are deliberately not verified; nodes serve self-signed certs.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from corsproxy.errors import BodyReadError, DecodeError, ParseError, TransportError, UpstreamStatusError
from corsproxy.models.schemas import NodeStatus, UpstreamResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_NODE_STATUS_PORT = 8080
MAX_REDIRECTS = 10


class Forwarder:
    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        node_status_port: int = DEFAULT_NODE_STATUS_PORT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.node_status_port = node_status_port
        # httpx.Client is safe to share across request threads.
        self._client = httpx.Client(
            verify=False,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            transport=transport,
        )

    def target_url(self, raw: str) -> str:
        """Build the https URL for an arbitrary target address."""

        target = raw.strip()
        for scheme in ("https://", "http://"):
            if target.lower().startswith(scheme):
                target = target[len(scheme) :]
                break
        return self._validate(f"https://{target}")

    def status_url(self, ip: str) -> str:
        return self._validate(f"https://{ip.strip()}:{self.node_status_port}/status")

    def fetch(self, url: str) -> UpstreamResponse:
        try:
            request = self._client.build_request("GET", url)
        except httpx.InvalidURL as exc:
            raise ParseError(f"invalid target url {url!r}: {exc}") from exc

        try:
            response = self._client.send(request, stream=True)
        except (httpx.TransportError, httpx.TooManyRedirects) as exc:
            raise TransportError(url, exc) from exc

        try:
            if response.status_code != 200:
                raise UpstreamStatusError(response.status_code)
            try:
                body = response.read()
            except httpx.HTTPError as exc:
                raise BodyReadError(f"reading body from {url} failed: {exc}") from exc
        finally:
            response.close()

        logger.debug("proxy.fetched", extra={"url": url, "bytes": len(body)})
        return UpstreamResponse(
            status_code=response.status_code,
            content_type=response.headers.get("content-type"),
            body=body,
        )

    def fetch_status(self, ip: str) -> tuple[UpstreamResponse, NodeStatus]:
        upstream = self.fetch(self.status_url(ip))
        try:
            status = NodeStatus.model_validate_json(upstream.body)
        except ValidationError as exc:
            raise DecodeError(f"malformed status body: {exc.errors()[0]['msg']}") from exc
        return upstream, status

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _validate(url: str) -> str:
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise ParseError(f"invalid target url {url!r}: {exc}") from exc
        if not parsed.host:
            raise ParseError(f"invalid target url {url!r}: missing host")
        return url
