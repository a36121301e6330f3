"""Error taxonomy for the proxy.

Every error carries the instrumentation event name it is reported under.
Only ``str(error)`` is ever shown to the caller.
"""

from __future__ import annotations


class ProxyError(Exception):
    event = "proxy.error"


class ParseError(ProxyError):
    """The target reference could not be turned into a URL."""

    event = "proxy.parse_url"


class TransportError(ProxyError):
    """Connection, DNS, TLS or timeout failure talking to the upstream."""

    event = "proxy.request_url"

    def __init__(self, url: str, cause: BaseException) -> None:
        detail = str(cause) or cause.__class__.__name__
        super().__init__(f"request to {url} failed: {detail}")
        self.url = url
        self.cause = cause


class UpstreamStatusError(ProxyError):
    event = "proxy.request_url"

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Error in HTTP request: {status_code}")
        self.status_code = status_code


class BodyReadError(ProxyError):
    event = "proxy.read_body"


class DecodeError(ProxyError):
    event = "proxy.parse_body"


class HandlerFault(ProxyError):
    """An unexpected exception escaped an inner pipeline layer."""

    event = "pipeline.fault"

    def __init__(self, cause: BaseException) -> None:
        super().__init__(str(cause) or cause.__class__.__name__)
        self.cause = cause


class StoreError(Exception):
    event = "update_node_state"


class PrepareError(StoreError):
    event = "update_node_state.prepare"


class ExecError(StoreError):
    event = "update_node_state.execute"
