from __future__ import annotations

import argparse

import uvicorn

from corsproxy.config import get_settings
from corsproxy.main import create_app
from corsproxy.observability.logging import configure_logging


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="CORS forwarding proxy")
    parser.add_argument("--host", default=settings.host, help="Address to bind (CORS_PROXY_HOST)")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind (CORS_PROXY_PORT)")
    parser.add_argument("--mode", choices=["url", "status"], default=settings.mode, help="Route shape to serve")
    args = parser.parse_args()

    settings = settings.model_copy(update={"host": args.host, "port": args.port, "mode": args.mode})
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
