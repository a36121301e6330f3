from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NodeStatus(BaseModel):
    """Body returned by a node's ``/status`` endpoint."""

    model_config = ConfigDict(extra="ignore")

    status: str


class UpstreamResponse(BaseModel):
    status_code: int
    content_type: str | None = None
    body: bytes


class UpsertResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    state: str
    created_at: datetime
    updated_at: datetime
    was_insert: bool


class NodeObservation(BaseModel):
    ip: str
    state: str | None
    created_at: datetime
    updated_at: datetime
