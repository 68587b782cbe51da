"""
Plan de escritura: filas candidatas que produce el planificador fan-out.

Las filas son efimeras: se generan por pasada y se descartan una vez
aplicadas (apply) o devueltas (preview).
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class Operation(str, Enum):
    """Tipo de escritura de una fila del plan."""
    INSERT = "insert"                # alta con PK autoincremental
    UPDATE = "update"                # update por clave (where = key)
    UPSERT = "upsert"                # insert-or-update por clave
    INSERT_IGNORE = "insert_ignore"  # asociaciones multi-valor


@dataclass(frozen=True)
class Placeholder:
    """
    Valor que solo se conoce despues de un insert previo de la pasada
    (ej: id_product autogenerado).
    """
    name: str

    @property
    def token(self) -> str:
        return "{{" + self.name + "}}"

    def __str__(self) -> str:
        return self.token


NEXT_POSITION = Placeholder("next_position")


@dataclass(frozen=True)
class DimensionSets:
    """Conjuntos efectivos de tiendas / idiomas / grupos de la pasada."""

    shops: tuple[int, ...] = ()
    langs: tuple[int, ...] = ()
    groups: tuple[int, ...] = ()
    id_shop_default: int = 0
    id_shop_group: int = 0
    id_lang: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "id_shops": list(self.shops),
            "id_langs": list(self.langs),
            "id_groups": list(self.groups),
            "id_shop_default": self.id_shop_default,
            "id_shop_group": self.id_shop_group,
        }


def render_value(value: Any) -> Any:
    """Valor apto para JSON; los placeholders se muestran como token."""
    if isinstance(value, Placeholder):
        return value.token
    if isinstance(value, (datetime, date)):
        return value.isoformat(sep=" ") if isinstance(value, datetime) else value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _hashable(value: Any) -> Any:
    try:
        hash(value)
        return value
    except TypeError:
        return repr(value)


@dataclass
class PlanRow:
    """Fila planificada para una tabla fisica (con prefijo)."""

    table: str
    logical: str
    operation: Operation
    columns: dict[str, Any]
    key: dict[str, Any] = field(default_factory=dict)
    generates: Optional[str] = None
    lookup: dict[str, Any] = field(default_factory=dict)
    dimensions: dict[str, Optional[int]] = field(default_factory=dict)
    # data | category_link | category_default
    role: str = "data"

    def identity(self) -> tuple:
        """Identidad natural (tabla + operacion + clave) para colapsar duplicados."""
        if self.operation is Operation.INSERT and not self.lookup:
            # Sin clave: cada insert autoincremental es unico dentro de su dimension
            return (self.table, self.operation.value, tuple(sorted(self.dimensions.items(), key=lambda kv: kv[0])))
        key_items = self.key or self.lookup
        return (
            self.table,
            self.operation.value,
            tuple(sorted(((k, _hashable(v)) for k, v in key_items.items()), key=lambda kv: kv[0])),
        )

    def to_preview(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "operation": self.operation.value,
            "key": {k: render_value(v) for k, v in self.key.items()},
            "columns": {k: render_value(v) for k, v in self.columns.items()},
        }


@dataclass
class SkippedTable:
    table: str
    reason: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class CategoryLinkPlan:
    """Resultado del matching de categorias para la pasada."""

    labels: list[str] = field(default_factory=list)
    best: Optional[int] = None
    all: list[int] = field(default_factory=list)
    missing: bool = False


@dataclass
class Plan:
    """Plan completo de una pasada (un registro fuente)."""

    dimensions: DimensionSets
    rows: list[PlanRow] = field(default_factory=list)
    skipped: list[SkippedTable] = field(default_factory=list)
    entity_id: Any = None
    entity_key: str = "id_product"
    categories: Optional[CategoryLinkPlan] = None

    @property
    def candidates(self) -> int:
        return len(self.rows)

    def add_rows(self, rows: list[PlanRow]) -> None:
        """
        Agrega filas colapsando por identidad: la ultima planificada gana,
        manteniendo la posicion de la primera.
        """
        index: "OrderedDict[tuple, int]" = OrderedDict(
            (row.identity(), i) for i, row in enumerate(self.rows)
        )
        for row in rows:
            ident = row.identity()
            if ident in index:
                self.rows[index[ident]] = row
            else:
                index[ident] = len(self.rows)
                self.rows.append(row)

    def rows_for(self, table: str) -> list[PlanRow]:
        return [r for r in self.rows if r.table == table or r.logical == table]

    def grouped(self) -> dict[str, list[dict[str, Any]]]:
        out: dict[str, list[dict[str, Any]]] = {}
        for row in self.rows:
            out.setdefault(row.table, []).append(row.to_preview())
        return out
