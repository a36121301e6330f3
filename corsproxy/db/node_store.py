from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import MetaData, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from corsproxy.db.models import KeyShape, nodes_table
from corsproxy.errors import ExecError, PrepareError
from corsproxy.models.schemas import NodeObservation, UpsertResult

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class NodeStore:
    """Last observed status per node, kept in the ``nodes`` table."""

    def __init__(
        self,
        engine: Engine,
        key_shape: KeyShape = "address_state",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.engine = engine
        self.key_shape = key_shape
        self.clock = clock
        self.metadata = MetaData()
        self.table = nodes_table(self.metadata, key_shape)
        self._identity = [col.name for col in self.table.primary_key.columns]

    def init_schema(self) -> None:
        self.metadata.create_all(self.engine, checkfirst=True)

    def upsert(self, key: str, state: str) -> UpsertResult:
        """
        Record one observation of ``key`` in a single atomic statement.

        The conflict clause only touches ``state`` and ``updated_at``, so
        ``created_at`` is written once, by whichever statement inserts the
        identity first. Concurrent writers are serialised by sqlite itself.
        """

        now = self.clock()
        try:
            stmt = sqlite_insert(self.table).values(ip=key, state=state, created_at=now, updated_at=now)
            stmt = stmt.on_conflict_do_update(
                index_elements=self._identity,
                set_={"state": stmt.excluded.state, "updated_at": stmt.excluded.updated_at},
            ).returning(self.table.c.created_at, self.table.c.updated_at)
            # Compiling here makes statement errors surface as PrepareError
            # instead of failing later inside the transaction.
            stmt.compile(dialect=self.engine.dialect)
        except SQLAlchemyError as exc:
            raise PrepareError(f"preparing node upsert failed: {exc}") from exc

        try:
            with self.engine.begin() as conn:
                row = conn.execute(stmt).one()
        except SQLAlchemyError as exc:
            raise ExecError(f"executing node upsert failed: {exc}") from exc

        result = UpsertResult(
            key=key,
            state=state,
            created_at=row.created_at,
            updated_at=row.updated_at,
            was_insert=row.created_at == now,
        )
        logger.debug("node.upserted", extra={"ip": key, "state": state, "was_insert": result.was_insert})
        return result

    def get(self, key: str, state: str | None = None) -> NodeObservation | None:
        query = select(self.table).where(self.table.c.ip == key)
        if state is not None:
            query = query.where(self.table.c.state == state)
        with self.engine.connect() as conn:
            row = conn.execute(query.order_by(self.table.c.updated_at.desc())).first()
        return _to_observation(row) if row else None

    def list_nodes(self) -> list[NodeObservation]:
        query = select(self.table).order_by(self.table.c.ip, self.table.c.created_at)
        with self.engine.connect() as conn:
            rows = conn.execute(query).all()
        return [_to_observation(r) for r in rows]


def _to_observation(row) -> NodeObservation:
    return NodeObservation(ip=row.ip, state=row.state, created_at=row.created_at, updated_at=row.updated_at)
