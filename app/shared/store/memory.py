# app/shared/store/memory.py
"""
Almacén en memoria con el mismo esquema que la base real.

Se usa en las pruebas y para demos locales. Permite simular fallas por
(operación, relación) para ejercitar los caminos de error de la venta.
"""
import copy
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Union

from app.config.database import Base
from app.core.exceptions import RecordStoreError
import app.shared.database.models  # noqa: F401  registra las tablas en Base.metadata

from .base import Columns, Filter, Order, RecordStore, Row, parse_columns, row_matches
from .feed import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed


def _column_defaults(table) -> Dict[str, object]:
    defaults = {}
    for column in table.columns:
        if column.default is not None and column.default.is_scalar:
            defaults[column.name] = column.default.arg
        else:
            defaults[column.name] = None
    return defaults


class MemoryRecordStore(RecordStore):
    def __init__(self, feed: Optional[ChangeFeed] = None, metadata=Base.metadata):
        self.feed = feed
        self._schema = {name: _column_defaults(table) for name, table in metadata.tables.items()}
        self._server_defaults = {
            name: {c.name for c in table.columns if c.server_default is not None}
            for name, table in metadata.tables.items()
        }
        self._tables: Dict[str, Dict[int, Row]] = {name: {} for name in self._schema}
        self._sequences: Dict[str, int] = {name: 0 for name in self._schema}
        self._failures: Dict[Tuple[str, str], Dict[str, object]] = {}
        self.calls: List[Tuple[str, str]] = []

    # ==================== SIMULACIÓN DE FALLAS ====================

    def fail_on(self, operation: str, relation: str, message: str = "falla simulada",
                times: Optional[int] = None) -> None:
        """Hacer fallar ``operation`` sobre ``relation``; ``times=None`` falla siempre"""
        self._failures[(operation, relation)] = {"message": message, "times": times}

    def clear_failures(self) -> None:
        self._failures.clear()

    def _maybe_fail(self, operation: str, relation: str) -> None:
        self.calls.append((operation, relation))
        failure = self._failures.get((operation, relation))
        if failure is None:
            return
        if failure["times"] is not None:
            failure["times"] -= 1
            if failure["times"] <= 0:
                del self._failures[(operation, relation)]
        raise RecordStoreError(operation, relation, str(failure["message"]))

    # ==================== ACCESO DIRECTO (PRUEBAS) ====================

    def seed(self, relation: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        """Cargar filas sin publicar eventos ni pasar por la simulación de fallas"""
        return [copy.deepcopy(self._store_row(relation, row)) for row in self._as_rows(rows)]

    def rows(self, relation: str) -> List[Row]:
        return [copy.deepcopy(row) for row in self._table(relation, "select").values()]

    # ==================== OPERACIONES ====================

    async def select(
        self,
        relation: str,
        columns: Columns = "*",
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Row]:
        self._maybe_fail("select", relation)
        self._check_filters("select", relation, filters)
        table = self._table(relation, "select")
        wanted = parse_columns(columns)
        self._check_columns("select", relation, wanted or [])
        self._check_columns("select", relation, [f.column for f in filters])

        rows = [row for row in table.values() if row_matches(row, filters)]
        for o in reversed(list(order)):
            self._check_columns("select", relation, [o.column])
            present = [r for r in rows if r.get(o.column) is not None]
            missing = [r for r in rows if r.get(o.column) is None]
            present.sort(key=lambda r: r[o.column], reverse=o.descending)
            rows = present + missing
        if limit is not None:
            rows = rows[:limit]
        if wanted is not None:
            rows = [{c: row.get(c) for c in wanted} for row in rows]
        return [copy.deepcopy(row) for row in rows]

    async def insert(self, relation: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        self._maybe_fail("insert", relation)
        self._table(relation, "insert")
        payload = self._as_rows(rows)
        for row in payload:
            self._check_columns("insert", relation, list(row))
        created = [self._store_row(relation, row) for row in payload]
        for row in created:
            self._publish(INSERT, relation, row)
        return [copy.deepcopy(row) for row in created]

    async def update(self, relation: str, patch: Row, filters: Sequence[Filter]) -> int:
        self._maybe_fail("update", relation)
        self._check_filters("update", relation, filters, required=True)
        table = self._table(relation, "update")
        self._check_columns("update", relation, list(patch))
        updated = 0
        for row in table.values():
            if row_matches(row, filters):
                row.update(copy.deepcopy(patch))
                updated += 1
                self._publish(UPDATE, relation, row)
        return updated

    async def delete(self, relation: str, filters: Sequence[Filter]) -> int:
        self._maybe_fail("delete", relation)
        self._check_filters("delete", relation, filters, required=True)
        table = self._table(relation, "delete")
        doomed = [key for key, row in table.items() if row_matches(row, filters)]
        for key in doomed:
            row = table.pop(key)
            self._publish(DELETE, relation, row)
        return len(doomed)

    # ==================== INTERNOS ====================

    def _table(self, relation: str, operation: str) -> Dict[int, Row]:
        if relation not in self._tables:
            raise RecordStoreError(operation, relation, "relación desconocida")
        return self._tables[relation]

    def _check_columns(self, operation: str, relation: str, columns: Sequence[str]) -> None:
        known = self._schema[relation]
        unknown = [c for c in columns if c not in known]
        if unknown:
            raise RecordStoreError(operation, relation, f"columnas desconocidas: {', '.join(unknown)}")

    def _store_row(self, relation: str, row: Row) -> Row:
        table = self._table(relation, "insert")
        stored = dict(self._schema[relation])
        for column in self._server_defaults[relation]:
            stored[column] = datetime.now(timezone.utc)
        stored.update(copy.deepcopy(row))
        if stored.get("id") is None:
            self._sequences[relation] += 1
            stored["id"] = self._sequences[relation]
        else:
            self._sequences[relation] = max(self._sequences[relation], int(stored["id"]))
        table[stored["id"]] = stored
        return stored

    def _publish(self, event_type: str, relation: str, row: Row) -> None:
        if self.feed is not None:
            self.feed.publish(ChangeEvent(event_type, relation, copy.deepcopy(row)))
