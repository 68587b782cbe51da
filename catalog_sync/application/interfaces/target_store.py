"""
Contratos del catalogo destino consumidos por el planificador.

Este contrato existe para:
- Mantener Clean Architecture: el planificador no depende de SQLAlchemy.
- Facilitar tests unitarios con un probe en memoria.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class ColumnInfo:
    """Metadatos de columna relevantes para el planificador."""

    name: str
    kind: str  # integer | numeric | date | text | other
    max_length: int = 0
    nullable: bool = True

    @property
    def is_numeric(self) -> bool:
        return self.kind in ("integer", "numeric")

    @property
    def is_date(self) -> bool:
        return self.kind == "date"


class SchemaProbePort(Protocol):
    """
    Consulta de esquema memoizada por pasada.

    Implementaciones:
    - SchemaProbe (sqlalchemy.inspect sobre la conexion de la pasada).
    - Probes en memoria para tests.
    """

    def has_table(self, table: str) -> bool:
        ...

    def columns(self, table: str) -> dict[str, ColumnInfo]:
        ...

    def has_column(self, table: str, column: str) -> bool:
        ...

    def column_max_length(self, table: str, column: str) -> int:
        ...

    def primary_key(self, table: str) -> list[str]:
        ...

    def column(self, table: str, column: str) -> Optional[ColumnInfo]:
        ...
