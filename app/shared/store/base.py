# app/shared/store/base.py
"""
Contrato del almacén de registros.

El núcleo de ventas no conoce la base de datos: sólo crea, lee, actualiza y
borra filas de relaciones con nombre, con filtros, orden y límite. Las fallas
se informan como ``RecordStoreError``.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from app.core.exceptions import RecordStoreError

Row = Dict[str, Any]
Columns = Union[str, Sequence[str]]


@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def ilike(column: str, pattern: str) -> Filter:
    return Filter(column, "ilike", pattern)


def is_null(column: str) -> Filter:
    return Filter(column, "is_null")


FILTER_OPS = {"eq", "in", "ilike", "is_null"}


def parse_columns(columns: Columns) -> Optional[List[str]]:
    """``"*"`` -> None (todas); ``"id,nombre"`` o una secuencia -> lista"""
    if isinstance(columns, str):
        if columns.strip() == "*":
            return None
        return [c.strip() for c in columns.split(",") if c.strip()]
    return list(columns)


def like_to_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def row_matches(row: Row, filters: Sequence[Filter]) -> bool:
    for f in filters:
        value = row.get(f.column)
        if f.op == "eq":
            if value != f.value:
                return False
        elif f.op == "in":
            if value not in f.value:
                return False
        elif f.op == "ilike":
            if value is None or not like_to_regex(f.value).match(str(value)):
                return False
        elif f.op == "is_null":
            if value is not None:
                return False
    return True


class RecordStore(ABC):
    """Operaciones por relación que usa el núcleo de ventas"""

    @abstractmethod
    async def select(
        self,
        relation: str,
        columns: Columns = "*",
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> List[Row]:
        ...

    @abstractmethod
    async def insert(self, relation: str, rows: Union[Row, Sequence[Row]]) -> List[Row]:
        ...

    @abstractmethod
    async def update(self, relation: str, patch: Row, filters: Sequence[Filter]) -> int:
        ...

    @abstractmethod
    async def delete(self, relation: str, filters: Sequence[Filter]) -> int:
        ...

    async def close(self) -> None:
        pass

    @staticmethod
    def _as_rows(rows: Union[Row, Sequence[Row]]) -> List[Row]:
        if isinstance(rows, dict):
            return [rows]
        return list(rows)

    @staticmethod
    def _check_filters(operation: str, relation: str, filters: Sequence[Filter], required: bool = False):
        for f in filters:
            if f.op not in FILTER_OPS:
                raise RecordStoreError(operation, relation, f"filtro no soportado: {f.op}")
        # Igual que la API remota: nunca actualizar/borrar la tabla completa
        if required and not filters:
            raise RecordStoreError(operation, relation, "se requiere al menos un filtro")
