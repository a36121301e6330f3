from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from corsproxy.config import Settings, get_settings


def get_engine(settings: Settings | None = None) -> Engine:
    settings = settings or get_settings()
    # One engine is shared by every request thread; the pool hands each
    # thread its own sqlite connection.
    return create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False, "timeout": 30},
        pool_pre_ping=True,
    )
