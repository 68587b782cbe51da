"""
Probe de esquema del catalogo destino.

Responde existencia de tablas/columnas y metadatos (PK, tipo, largo maximo)
usando sqlalchemy.inspect(). Todo se memoiza por pasada: una instancia vive
lo que dura una sincronizacion (el esquema puede cambiar entre corridas).

Politica de fallos: cualquier error del probe se trata como "no existe"
(se registra un warning y la pasada continua con menor cobertura).
"""
from __future__ import annotations

import re
from typing import Any, Optional

from loguru import logger
from sqlalchemy import MetaData, Table, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.types import (
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    TypeEngine,
)

from catalog_sync.application.interfaces.target_store import ColumnInfo
from catalog_sync.shared.result import Err, ErrorKind, Result, capture


_DATE_NAMES = re.compile(r"^(date|datetime|timestamp|time|year)$", re.IGNORECASE)
_NUMERIC_NAMES = re.compile(
    r"^(int|integer|bigint|smallint|tinyint|mediumint|decimal|numeric|double|float|real)$",
    re.IGNORECASE,
)


def classify_type(col_type: Any) -> str:
    """Clasifica un tipo SQLAlchemy reflejado."""
    if isinstance(col_type, Boolean):
        return "integer"
    if isinstance(col_type, Integer):
        return "integer"
    if isinstance(col_type, (Numeric, Float)):
        return "numeric"
    if isinstance(col_type, (Date, DateTime, Time)):
        return "date"
    if isinstance(col_type, (String, Text)):
        return "text"
    name = type(col_type).__name__ if isinstance(col_type, TypeEngine) else str(col_type)
    if _DATE_NAMES.match(name):
        return "date"
    if _NUMERIC_NAMES.match(name):
        return "numeric"
    return "other"


class SchemaProbe:
    """
    Probe memoizado para una pasada.

    Las primitivas probe_* devuelven Result; los accesos publicos
    (has_table, columns, ...) degradan Err a "no existe".
    """

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._inspector = None
        self._tables: dict[str, bool] = {}
        self._columns: dict[str, dict[str, ColumnInfo]] = {}
        self._pks: dict[str, list[str]] = {}
        self._reflected: dict[str, Optional[Table]] = {}
        self._metadata = MetaData()
        self.failures: list[Err] = []

    @property
    def connection(self) -> Connection:
        return self._conn

    def _get_inspector(self):
        if self._inspector is None:
            self._inspector = inspect(self._conn)
        return self._inspector

    def record_failure(self, err: Err) -> None:
        """Registra el fallo y descarta la transaccion abortada (PostgreSQL)."""
        self.failures.append(err)
        logger.warning(f"Consulta al catalogo destino fallida ({err.kind.value}): {err.message}")
        if self._conn.in_transaction():
            try:
                self._conn.rollback()
            except Exception as rollback_error:
                logger.warning(f"Rollback del probe fallido: {rollback_error}")
        self._inspector = None

    # Primitivas con Result

    def probe_table(self, table: str) -> Result[bool]:
        return capture(lambda: bool(self._get_inspector().has_table(table)), ErrorKind.SCHEMA_PROBE, context=f"has_table {table}")

    def probe_columns(self, table: str) -> Result[dict[str, ColumnInfo]]:
        def _read() -> dict[str, ColumnInfo]:
            out: dict[str, ColumnInfo] = {}
            for col in self._get_inspector().get_columns(table):
                col_type = col.get("type")
                length = getattr(col_type, "length", None) or 0
                out[str(col["name"])] = ColumnInfo(
                    name=str(col["name"]),
                    kind=classify_type(col_type),
                    max_length=int(length) if isinstance(length, int) else 0,
                    nullable=bool(col.get("nullable", True)),
                )
            return out

        return capture(_read, ErrorKind.SCHEMA_PROBE, context=f"columns {table}")

    def probe_primary_key(self, table: str) -> Result[list[str]]:
        return capture(
            lambda: [str(c) for c in (self._get_inspector().get_pk_constraint(table) or {}).get("constrained_columns") or []],
            ErrorKind.SCHEMA_PROBE,
            context=f"pk {table}",
        )

    # Accesos memoizados (fail-closed)

    def has_table(self, table: str) -> bool:
        if table not in self._tables:
            res = self.probe_table(table)
            if isinstance(res, Err):
                self.record_failure(res)
            self._tables[table] = res.unwrap_or(False)
        return self._tables[table]

    def columns(self, table: str) -> dict[str, ColumnInfo]:
        if table not in self._columns:
            if not self.has_table(table):
                self._columns[table] = {}
            else:
                res = self.probe_columns(table)
                if isinstance(res, Err):
                    self.record_failure(res)
                self._columns[table] = res.unwrap_or({})
        return self._columns[table]

    def has_column(self, table: str, column: str) -> bool:
        return column in self.columns(table)

    def column(self, table: str, column: str) -> Optional[ColumnInfo]:
        return self.columns(table).get(column)

    def column_max_length(self, table: str, column: str) -> int:
        info = self.column(table, column)
        return info.max_length if info else 0

    def column_kind(self, table: str, column: str) -> str:
        info = self.column(table, column)
        return info.kind if info else "other"

    def primary_key(self, table: str) -> list[str]:
        if table not in self._pks:
            if not self.has_table(table):
                self._pks[table] = []
            else:
                res = self.probe_primary_key(table)
                if isinstance(res, Err):
                    self.record_failure(res)
                self._pks[table] = res.unwrap_or([])
        return list(self._pks[table])

    def table(self, table: str) -> Optional[Table]:
        """Tabla reflejada (para construir sentencias Core)."""
        if table not in self._reflected:
            if not self.has_table(table):
                self._reflected[table] = None
            else:
                res = capture(
                    lambda: Table(table, self._metadata, autoload_with=self._conn),
                    ErrorKind.SCHEMA_PROBE,
                    context=f"reflect {table}",
                )
                if isinstance(res, Err):
                    self.record_failure(res)
                self._reflected[table] = res.unwrap_or(None)
        return self._reflected[table]
