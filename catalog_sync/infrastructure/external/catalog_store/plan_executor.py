"""
Ejecutor de planes contra el catalogo destino.

Modos:
    - preview: no escribe; devuelve las filas con placeholders ({{id_product}})
    - apply:   escribe fila por fila, cada una en su propia transaccion.
               Un fallo de fila se cuenta y la pasada continua.

Sentencias por dialecto (SQLAlchemy Core):
    - mysql:              INSERT ... ON DUPLICATE KEY UPDATE / INSERT IGNORE
    - sqlite, postgresql: INSERT ... ON CONFLICT DO UPDATE / DO NOTHING
    - otros:              SELECT y luego UPDATE o INSERT
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger
from sqlalchemy import Table, and_, func, insert, select, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects import mysql as mysql_dialect
from sqlalchemy.dialects import postgresql as pg_dialect
from sqlalchemy.dialects import sqlite as sqlite_dialect
from sqlalchemy.engine import Connection

from catalog_sync.domain.entities.plan import NEXT_POSITION, Operation, Placeholder, Plan, PlanRow, render_value
from catalog_sync.shared.result import Err, ErrorKind, Ok, Result

from .schema_probe import SchemaProbe


# Columnas que solo se escriben al crear la fila
CREATE_ONLY_COLUMNS = frozenset({"date_add"})

# MySQL: lock wait timeout, conexion perdida durante la consulta, max_execution_time
TIMEOUT_ERROR_CODES = frozenset({1205, 2013, 3024})
# PostgreSQL: query_canceled (statement_timeout), lock_not_available
TIMEOUT_SQLSTATES = frozenset({"57014", "55P03"})


def classify_row_error(error: BaseException) -> ErrorKind:
    """TIMEOUT para timeouts del pool o del driver, ROW_WRITE para el resto."""
    if isinstance(error, (TimeoutError, sa_exc.TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, sa_exc.DBAPIError):
        orig = error.orig
        if isinstance(orig, TimeoutError):
            return ErrorKind.TIMEOUT
        args = getattr(orig, "args", None) or ()
        if isinstance(error, sa_exc.OperationalError) and args and isinstance(args[0], int) and args[0] in TIMEOUT_ERROR_CODES:
            return ErrorKind.TIMEOUT
        if getattr(orig, "sqlstate", None) in TIMEOUT_SQLSTATES or getattr(orig, "pgcode", None) in TIMEOUT_SQLSTATES:
            return ErrorKind.TIMEOUT
    return ErrorKind.ROW_WRITE


@dataclass
class TableCounters:
    applied: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"applied": self.applied, "failed": self.failed, "skipped": self.skipped}


@dataclass
class CategoryCounters:
    linked: int = 0
    defaults_set: int = 0
    missing: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "linked": self.linked,
            "defaultsSet": self.defaults_set,
            "missing": self.missing,
            "failed": self.failed,
        }


@dataclass
class ExecutionResult:
    """Resumen estructurado de una pasada (siempre se devuelve, incluso con fallos)."""

    mode: str
    candidates: int = 0
    applied: int = 0
    failed: int = 0
    skipped: int = 0
    rows: list[dict[str, Any]] = field(default_factory=list)
    tables: dict[str, TableCounters] = field(default_factory=dict)
    generated_ids: dict[str, Any] = field(default_factory=dict)
    categories: CategoryCounters = field(default_factory=CategoryCounters)
    errors: list[dict[str, Any]] = field(default_factory=list)

    def counter(self, table: str) -> TableCounters:
        if table not in self.tables:
            self.tables[table] = TableCounters()
        return self.tables[table]

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "candidates": self.candidates,
            "applied": self.applied,
            "failed": self.failed,
            "skipped": self.skipped,
            "rows": self.rows,
            "tables": {k: v.to_dict() for k, v in self.tables.items()},
            "generated_ids": dict(self.generated_ids),
            "categories": self.categories.to_dict(),
            "errors": list(self.errors),
        }


class UnresolvedPlaceholder(Exception):
    def __init__(self, name: str):
        super().__init__(f"Placeholder sin resolver: {{{{{name}}}}}")
        self.name = name


class PlanExecutor:
    """
    Ejecuta un Plan sobre la conexion de la pasada.

    Uso:
        executor = PlanExecutor(probe)
        result = executor.apply(plan)      # o executor.preview(plan)
    """

    def __init__(self, probe: SchemaProbe):
        self.probe = probe
        self.conn: Connection = probe.connection

    @property
    def dialect(self) -> str:
        return self.conn.dialect.name

    def execute(self, plan: Plan, mode: str = "preview") -> ExecutionResult:
        if mode == "apply":
            return self.apply(plan)
        return self.preview(plan)

    # =========================================================================
    # PREVIEW
    # =========================================================================

    def preview(self, plan: Plan) -> ExecutionResult:
        result = self._start("preview", plan)
        for row in plan.rows:
            result.rows.append(row.to_preview())
        return result

    # =========================================================================
    # APPLY
    # =========================================================================

    def apply(self, plan: Plan) -> ExecutionResult:
        result = self._start("apply", plan)
        if plan.entity_id:
            result.generated_ids[plan.entity_key] = plan.entity_id

        for row in plan.rows:
            outcome = self._apply_row(row, result.generated_ids)
            counters = result.counter(row.table)
            preview = row.to_preview()
            if isinstance(outcome, Ok):
                result.applied += 1
                counters.applied += 1
                preview["status"] = "applied"
                if row.role == "category_link":
                    result.categories.linked += 1
                elif row.role == "category_default":
                    result.categories.defaults_set += 1
            else:
                result.failed += 1
                counters.failed += 1
                preview["status"] = "failed"
                preview["error"] = outcome.message
                result.errors.append({"table": row.table, "key": preview["key"], "kind": outcome.kind.value, "error": outcome.message})
                if row.role in ("category_link", "category_default"):
                    result.categories.failed += 1
            result.rows.append(preview)

        logger.info(
            f"Pasada aplicada: candidatas={result.candidates} aplicadas={result.applied} "
            f"fallidas={result.failed} omitidas={result.skipped}"
        )
        return result

    def _start(self, mode: str, plan: Plan) -> ExecutionResult:
        result = ExecutionResult(mode=mode, candidates=plan.candidates)
        for skipped in plan.skipped:
            n = int(skipped.details.get("rows", 1) or 1)
            result.skipped += n
            result.counter(skipped.table).skipped += n
        if plan.categories is not None and plan.categories.missing:
            result.categories.missing += 1
        return result

    def _apply_row(self, row: PlanRow, generated: dict[str, Any]) -> Result[Any]:
        try:
            outcome = self._write(row, generated)
            self.conn.commit()
            return Ok(outcome)
        except Exception as e:
            try:
                self.conn.rollback()
            except Exception as rollback_error:
                logger.warning(f"Rollback fallido en {row.table}: {rollback_error}")
            text = str(e).splitlines()[0] if str(e) else type(e).__name__
            kind = classify_row_error(e)
            logger.warning(f"Fila fallida en {row.table} key={row.to_preview()['key']}: {text}")
            return Err(kind, text, {"table": row.table})

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _resolve(self, table: Table, row: PlanRow, values: dict[str, Any], generated: dict[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for column, value in values.items():
            if value == NEXT_POSITION:
                value = self._next_position(table, row, generated)
            elif isinstance(value, Placeholder):
                if value.name not in generated:
                    raise UnresolvedPlaceholder(value.name)
                value = generated[value.name]
            out[column] = value
        return out

    def _next_position(self, table: Table, row: PlanRow, generated: dict[str, Any]) -> int:
        if "position" not in table.c:
            return 0
        conditions = []
        if "id_category" in table.c and "id_category" in row.columns:
            cid = row.columns["id_category"]
            if isinstance(cid, Placeholder):
                cid = generated.get(cid.name)
            conditions.append(table.c.id_category == cid)
        stmt = select(func.max(table.c.position))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        current = self.conn.execute(stmt).scalar()
        return 0 if current is None else int(current) + 1

    def _write(self, row: PlanRow, generated: dict[str, Any]) -> Any:
        table = self.probe.table(row.table)
        if table is None:
            raise RuntimeError(f"Tabla no disponible: {row.table}")
        columns = {k: v for k, v in row.columns.items() if k in table.c}
        key = self._resolve(table, row, row.key, generated)
        values = self._resolve(table, row, columns, generated)

        if row.operation is Operation.INSERT:
            return self._insert_generated(table, row, values, generated)
        if row.operation is Operation.UPDATE:
            set_values = {k: v for k, v in values.items() if k not in key}
            if not set_values:
                return 0
            res = self.conn.execute(update(table).where(self._where(table, key)).values(set_values))
            return res.rowcount
        if row.operation is Operation.INSERT_IGNORE:
            return self._insert_ignore(table, {**values, **key}, key)
        return self._upsert(table, {**values, **key}, list(key.keys()))

    @staticmethod
    def _where(table: Table, key: dict[str, Any]):
        return and_(*[table.c[k] == v for k, v in key.items()])

    def _insert_generated(self, table: Table, row: PlanRow, values: dict[str, Any], generated: dict[str, Any]) -> Any:
        pk = row.generates
        if row.lookup and pk and pk in table.c:
            lookup = self._resolve(table, row, row.lookup, generated)
            existing = self.conn.execute(
                select(table.c[pk]).where(self._where(table, lookup)).order_by(table.c[pk].desc()).limit(1)
            ).scalar()
            if existing is not None:
                set_values = {k: v for k, v in values.items() if k not in CREATE_ONLY_COLUMNS and k != pk}
                if set_values:
                    self.conn.execute(update(table).where(table.c[pk] == existing).values(set_values))
                generated[pk] = existing
                logger.debug(f"{row.table}: {pk}={existing} encontrado por {list(lookup)}")
                return existing

        res = self.conn.execute(insert(table).values(values))
        new_id = None
        if res.inserted_primary_key:
            new_id = res.inserted_primary_key[0]
        if new_id is None:
            new_id = res.lastrowid
        if pk and new_id is not None:
            generated[pk] = int(new_id)
            logger.info(f"{row.table}: insertado {pk}={new_id}")
        return new_id

    def _matches_primary_key(self, table: Table, key_cols: list[str]) -> bool:
        pk = self.probe.primary_key(table.name)
        return bool(pk) and set(pk) == set(key_cols)

    def _upsert(self, table: Table, values: dict[str, Any], key_cols: list[str]) -> Any:
        update_cols = [k for k in values if k not in key_cols and k not in CREATE_ONLY_COLUMNS]
        dialect = self.dialect
        if self._matches_primary_key(table, key_cols):
            if dialect == "mysql":
                stmt = mysql_dialect.insert(table).values(values)
                if update_cols:
                    stmt = stmt.on_duplicate_key_update({k: stmt.inserted[k] for k in update_cols})
                else:
                    stmt = stmt.prefix_with("IGNORE")
                return self.conn.execute(stmt).rowcount
            if dialect in ("sqlite", "postgresql"):
                module = sqlite_dialect if dialect == "sqlite" else pg_dialect
                stmt = module.insert(table).values(values)
                if update_cols:
                    stmt = stmt.on_conflict_do_update(
                        index_elements=key_cols,
                        set_={k: stmt.excluded[k] for k in update_cols},
                    )
                else:
                    stmt = stmt.on_conflict_do_nothing(index_elements=key_cols)
                return self.conn.execute(stmt).rowcount

        key = {k: values[k] for k in key_cols}
        exists = self.conn.execute(select(func.count()).select_from(table).where(self._where(table, key))).scalar()
        if exists:
            if not update_cols:
                return 0
            return self.conn.execute(
                update(table).where(self._where(table, key)).values({k: values[k] for k in update_cols})
            ).rowcount
        return self.conn.execute(insert(table).values(values)).rowcount

    def _insert_ignore(self, table: Table, values: dict[str, Any], key: dict[str, Any]) -> Any:
        dialect = self.dialect
        if dialect == "mysql":
            return self.conn.execute(mysql_dialect.insert(table).values(values).prefix_with("IGNORE")).rowcount
        if dialect in ("sqlite", "postgresql"):
            module = sqlite_dialect if dialect == "sqlite" else pg_dialect
            return self.conn.execute(module.insert(table).values(values).on_conflict_do_nothing()).rowcount
        exists = self.conn.execute(select(func.count()).select_from(table).where(self._where(table, key))).scalar()
        if exists:
            return 0
        return self.conn.execute(insert(table).values(values)).rowcount


def render_preview(plan: Plan) -> dict[str, Any]:
    """Documento de preview agrupado por tabla."""
    return {
        "dimensions": plan.dimensions.to_dict(),
        "candidates": plan.candidates,
        "tables": plan.grouped(),
        "skipped": [
            {"table": s.table, "reason": s.reason, **{k: render_value(v) for k, v in s.details.items()}}
            for s in plan.skipped
        ],
        "categories": None if plan.categories is None else {
            "labels": plan.categories.labels,
            "best": plan.categories.best,
            "all": plan.categories.all,
            "missing": plan.categories.missing,
        },
    }
