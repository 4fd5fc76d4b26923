# app/shared/store/sqlalchemy_store.py
"""
Almacén de registros sobre SQLAlchemy Core.

Cada operación es una transacción de una sola sentencia lógica: no hay
atomicidad entre filas de distintas llamadas, igual que con la API remota.
"""
import logging
from typing import List, Optional, Sequence, Union

from sqlalchemy import delete as sa_delete
from sqlalchemy import insert as sa_insert
from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.config.database import Base
from app.core.exceptions import RecordStoreError
import app.shared.database.models  # noqa: F401  registra las tablas en Base.metadata

from .base import Columns, Filter, Order, RecordStore, Row, parse_columns
from .feed import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)


class SQLAlchemyRecordStore(RecordStore):
    def __init__(self, engine: Engine, feed: Optional[ChangeFeed] = None, metadata=Base.metadata):
        self.engine = engine
        self.feed = feed
        self.metadata = metadata

    def create_schema(self) -> None:
        self.metadata.create_all(self.engine)

    # ==================== OPERACIONES ====================

    async def select(
        self,
        relation: str,
        columns: Columns = "*",
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Row]:
        self._check_filters("select", relation, filters)
        table = self._table("select", relation)
        wanted = parse_columns(columns)
        selected = [self._column("select", table, c) for c in wanted] if wanted else [table]

        stmt = sa_select(*selected).where(*self._where("select", table, filters))
        for o in order:
            column = self._column("select", table, o.column)
            stmt = stmt.order_by(column.desc() if o.descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            with self.engine.connect() as conn:
                return [dict(r._mapping) for r in conn.execute(stmt)]
        except SQLAlchemyError as e:
            raise RecordStoreError("select", relation, str(e)) from e

    async def insert(self, relation: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        table = self._table("insert", relation)
        payload = self._as_rows(rows)
        for row in payload:
            for name in row:
                self._column("insert", table, name)

        try:
            with self.engine.begin() as conn:
                ids = []
                for row in payload:
                    result = conn.execute(sa_insert(table).values(**row))
                    ids.append(result.inserted_primary_key[0])
                created = [
                    dict(r._mapping)
                    for r in conn.execute(sa_select(table).where(table.c.id.in_(ids)).order_by(table.c.id))
                ]
        except SQLAlchemyError as e:
            raise RecordStoreError("insert", relation, str(e)) from e

        for row in created:
            self._publish(INSERT, relation, row)
        return created

    async def update(self, relation: str, patch: Row, filters: Sequence[Filter]) -> int:
        self._check_filters("update", relation, filters, required=True)
        table = self._table("update", relation)
        values = {self._column("update", table, name).name: value for name, value in patch.items()}
        clauses = self._where("update", table, filters)

        try:
            with self.engine.begin() as conn:
                ids = [r.id for r in conn.execute(sa_select(table.c.id).where(*clauses))]
                if not ids:
                    return 0
                conn.execute(sa_update(table).where(table.c.id.in_(ids)).values(**values))
                updated = [dict(r._mapping) for r in conn.execute(sa_select(table).where(table.c.id.in_(ids)))]
        except SQLAlchemyError as e:
            raise RecordStoreError("update", relation, str(e)) from e

        for row in updated:
            self._publish(UPDATE, relation, row)
        return len(updated)

    async def delete(self, relation: str, filters: Sequence[Filter]) -> int:
        self._check_filters("delete", relation, filters, required=True)
        table = self._table("delete", relation)
        clauses = self._where("delete", table, filters)

        try:
            with self.engine.begin() as conn:
                doomed = [dict(r._mapping) for r in conn.execute(sa_select(table).where(*clauses))]
                if doomed:
                    conn.execute(sa_delete(table).where(table.c.id.in_([r["id"] for r in doomed])))
        except SQLAlchemyError as e:
            raise RecordStoreError("delete", relation, str(e)) from e

        for row in doomed:
            self._publish(DELETE, relation, row)
        return len(doomed)

    async def close(self) -> None:
        self.engine.dispose()

    # ==================== INTERNOS ====================

    def _table(self, operation: str, relation: str):
        table = self.metadata.tables.get(relation)
        if table is None:
            raise RecordStoreError(operation, relation, "relación desconocida")
        return table

    def _column(self, operation: str, table, name: str):
        if name not in table.c:
            raise RecordStoreError(operation, table.name, f"columna desconocida: {name}")
        return table.c[name]

    def _where(self, operation: str, table, filters: Sequence[Filter]):
        clauses = []
        for f in filters:
            column = self._column(operation, table, f.column)
            if f.op == "eq":
                clauses.append(column == f.value)
            elif f.op == "in":
                clauses.append(column.in_(list(f.value)))
            elif f.op == "ilike":
                clauses.append(column.ilike(f.value))
            elif f.op == "is_null":
                clauses.append(column.is_(None))
        return clauses

    def _publish(self, event_type: str, relation: str, row: Row) -> None:
        if self.feed is not None:
            self.feed.publish(ChangeEvent(event_type, relation, row))
