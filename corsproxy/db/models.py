from __future__ import annotations

from typing import Literal

from sqlalchemy import Column, DateTime, MetaData, String, Table, Text

KeyShape = Literal["address", "address_state"]

KEY_SHAPES: tuple[str, ...] = ("address", "address_state")


def nodes_table(metadata: MetaData, key_shape: KeyShape = "address_state") -> Table:
    """
    Build the ``nodes`` table for one deployment's identity.

    ``address_state`` keys rows on (ip, state) so every distinct status a node
    reports keeps its own first-seen time. ``address`` keys on ip alone, so a
    new status overwrites the previous one.
    """

    if key_shape not in KEY_SHAPES:
        raise ValueError(f"unknown node key shape: {key_shape!r}")

    state_is_key = key_shape == "address_state"
    return Table(
        "nodes",
        metadata,
        Column("ip", String(255), primary_key=True),
        Column("state", Text, primary_key=state_is_key, nullable=not state_is_key),
        Column("created_at", DateTime, nullable=False),
        Column("updated_at", DateTime, nullable=False),
    )
