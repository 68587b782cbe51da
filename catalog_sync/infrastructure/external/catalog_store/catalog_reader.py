"""
Lectura del catalogo vivo para el matching difuso.

Devuelve [{id, label}] de todas las entradas de un tipo de catalogo (por
defecto <prefix>category_lang: id_category + name, todos los idiomas).
"""
from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import select

from catalog_sync.shared.result import Err, ErrorKind, Ok, Result

from .schema_probe import SchemaProbe


CATALOG_KINDS: dict[str, tuple[str, str, str]] = {
    # kind: (tabla logica, columna id, columna label)
    "category": ("category_lang", "id_category", "name"),
    "attribute": ("attribute_lang", "id_attribute", "name"),
    "attribute_group": ("attribute_group_lang", "id_attribute_group", "name"),
    "feature": ("feature_lang", "id_feature", "name"),
}


def read_catalog(probe: SchemaProbe, prefix: str, kind: str = "category") -> Result[list[dict[str, Any]]]:
    """
    Lee el catalogo {id, label}. Filas sin id o sin label se descartan.
    """
    if kind not in CATALOG_KINDS:
        return Err(ErrorKind.CATALOG_MATCH, f"Tipo de catalogo desconocido: {kind}")
    logical, id_col, label_col = CATALOG_KINDS[kind]
    table = probe.table(prefix + logical)
    if table is None or id_col not in table.c or label_col not in table.c:
        return Err(ErrorKind.SCHEMA_PROBE, f"Catalogo no disponible: {prefix}{logical}")
    try:
        rows = probe.connection.execute(select(table.c[id_col], table.c[label_col])).all()
    except Exception as e:
        err = Err(ErrorKind.CATALOG_MATCH, f"Lectura de catalogo {prefix}{logical} fallo: {e}")
        probe.record_failure(err)
        return err
    entries: list[dict[str, Any]] = []
    for raw_id, raw_label in rows:
        label = str(raw_label or "").strip()
        try:
            cid = int(raw_id or 0)
        except (TypeError, ValueError):
            cid = 0
        if cid > 0 and label:
            entries.append({"id": cid, "label": label})
    logger.debug(f"Catalogo {kind}: {len(entries)} entradas leidas de {prefix}{logical}")
    return Ok(entries)


def read_active_ids(probe: SchemaProbe, prefix: str, entity: str) -> Result[list[int]]:
    """
    Ids activos de <prefix><entity> (ej: shop -> id_shop, group -> id_group).

    Si la tabla no tiene columna `active` se devuelven todos los ids.
    """
    table = probe.table(prefix + entity)
    id_col = f"id_{entity}"
    if table is None or id_col not in table.c:
        return Err(ErrorKind.SCHEMA_PROBE, f"Tabla no disponible: {prefix}{entity}")
    stmt = select(table.c[id_col]).order_by(table.c[id_col])
    if "active" in table.c:
        stmt = stmt.where(table.c.active == 1)
    try:
        ids = [int(v) for v in probe.connection.execute(stmt).scalars() if v]
    except Exception as e:
        err = Err(ErrorKind.SCHEMA_PROBE, f"Lectura de {prefix}{entity} fallo: {e}")
        probe.record_failure(err)
        return err
    return Ok(ids)
