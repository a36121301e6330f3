from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)

    host: str = Field(default="127.0.0.1", alias="CORS_PROXY_HOST")
    port: int = Field(default=8080, alias="CORS_PROXY_PORT")
    db_file: str = Field(default="/opt/corsproxy.db", alias="CORS_PROXY_DB_FILE")
    mode: Literal["url", "status"] = Field(default="status", alias="CORS_PROXY_MODE")
    track_nodes: bool = Field(default=True, alias="CORS_PROXY_TRACK_NODES")
    node_key: Literal["address", "address_state"] = Field(default="address_state", alias="CORS_PROXY_NODE_KEY")
    node_status_port: int = Field(default=8080, alias="CORS_PROXY_NODE_STATUS_PORT")
    http_timeout: float = Field(default=15.0, alias="CORS_PROXY_HTTP_TIMEOUT")
    log_level: str = Field(default="INFO", alias="CORS_PROXY_LOG_LEVEL")

    @property
    def db_path(self) -> Path:
        return Path(self.db_file)

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.db_path}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
