"""
Normalizacion y merge de documentos de mapeo (funciones puras).

Dos estrategias distintas por mapa:
    - fields:   REEMPLAZO. Un mapa de campos no vacio en el documento nuevo
                es autoritativo para esa tabla.
    - settings: MERGE superficial. Union de claves, gana el valor nuevo.

Ninguna funcion muta sus argumentos.
"""
from __future__ import annotations

import copy
import re
from typing import Any, Iterable, Optional


_EMPTY_CONST_MARKERS = {"=", '""', "''"}

SHOP_SCOPED_TABLES = (
    "product_shop",
    "image_shop",
    "product_attribute_shop",
    "stock_available",
    "category_shop",
    "product_lang",
)
LANG_SCOPED_TABLES = (
    "product_lang",
    "image_lang",
    "attribute_lang",
    "attachment_lang",
    "attribute_group_lang",
)
LEGACY_GLOBAL_KEYS = ("globals", "id_shops", "id_langs")

PRODUCT_LANG_DEFAULTS: dict[str, Any] = {
    "name": ["product.name", "title"],
    "link_rewrite": {
        "paths": ["product.slug", "product.name"],
        "transforms": [{"op": "trim"}, {"op": "slugify"}, {"op": "truncate", "len": 128}],
    },
    "description": {
        "paths": ["sections.product_information", "product.description_html"],
        "join": "html",
        "transforms": [{"op": "truncate", "len": 60000}],
    },
    "description_short": {
        "paths": ["product.description_html"],
        "transforms": [{"op": "strip_html"}, {"op": "truncate", "len": 800}],
    },
}


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _clean_constant(value: Any) -> Any:
    if isinstance(value, str) and value in _EMPTY_CONST_MARKERS:
        return ""
    return value


def promote_default(value: Any) -> str:
    """Un default se vuelve campo constante: '=valor' ('' sigue siendo '')."""
    s = "" if value is None else str(value)
    return "" if s == "" else "=" + s


def _is_constant(spec: Any) -> bool:
    return isinstance(spec, str) and spec.startswith("=")


def _is_path(spec: Any) -> bool:
    return isinstance(spec, str) and spec != "" and not spec.startswith("=")


# =========================================================================
# MERGE
# =========================================================================

def merge_tables(prev: Optional[dict], next_: Optional[dict]) -> dict[str, Any]:
    """Merge tabla por tabla con reemplazo de fields y merge de settings."""
    out: dict[str, Any] = {k: copy.deepcopy(v) for k, v in _as_dict(prev).items()}
    for name, block in _as_dict(next_).items():
        pv = _as_dict(out.get(name))
        nv = _as_dict(block)
        merged = {**pv, **copy.deepcopy(nv)}

        new_fields = _as_dict(nv.get("fields"))
        if new_fields:
            merged["fields"] = dict(copy.deepcopy(new_fields))
        elif isinstance(pv.get("fields"), dict):
            merged["fields"] = dict(pv["fields"])

        merged["settings"] = {**_as_dict(pv.get("settings")), **copy.deepcopy(_as_dict(nv.get("settings")))}
        out[name] = merged
    return out


def merge_table_config(prev: Optional[dict], next_: Optional[dict]) -> dict[str, Any]:
    """
    Merge de documentos completos.

    Claves de primer nivel: {**prev, **next}. Las tablas usan merge_tables().
    `flags` e `image_setting` quedan siempre presentes como objetos.
    """
    p = _as_dict(prev)
    n = _as_dict(next_)
    out = {**copy.deepcopy(p), **copy.deepcopy(n)}
    out["tables"] = merge_tables(p.get("tables"), n.get("tables"))
    if not isinstance(out.get("flags"), dict):
        out["flags"] = {}
    if not isinstance(out.get("image_setting"), dict):
        out["image_setting"] = {}
    return out


# =========================================================================
# NORMALIZACION (fields-only)
# =========================================================================

def normalize_fields_only(cfg: Optional[dict]) -> dict[str, Any]:
    """
    Documento con un unico mapa `fields` por tabla.

    - `mapping.fields` anidado se pliega en `fields` (gana el de primer nivel)
    - marcadores de constante vacia ("=", '""', "''") -> ""
    - `mapping.defaults` / `defaults` se promueven a constantes sin pisar campos
    - se eliminan `mapping`, `defaults` y la copia por tabla `setting_image`
    """
    out = copy.deepcopy(_as_dict(cfg))
    out.pop("defaults", None)
    tables = _as_dict(out.get("tables"))
    normalized: dict[str, Any] = {}
    for name, raw_block in tables.items():
        block = dict(_as_dict(raw_block))
        mapping = _as_dict(block.get("mapping"))
        nested = _as_dict(mapping.get("fields"))
        top = _as_dict(block.get("fields"))
        merged = {**nested, **top}
        fields = {k: _clean_constant(v) for k, v in merged.items()}

        defaults = {**_as_dict(mapping.get("defaults")), **_as_dict(block.get("defaults"))}
        for column, value in defaults.items():
            if column not in fields:
                fields[column] = promote_default(value)

        block["fields"] = fields
        block.pop("mapping", None)
        block.pop("defaults", None)
        block.pop("setting_image", None)
        normalized[str(name)] = block
    out["tables"] = normalized
    return out


# =========================================================================
# REBUILD DESDE FILAS POR TABLA
# =========================================================================

def _positive_list(value: Any) -> list[int]:
    if not isinstance(value, (list, tuple)):
        return []
    out: list[int] = []
    for v in value:
        try:
            n = int(v)
        except (TypeError, ValueError):
            continue
        if n > 0:
            out.append(n)
    return out


def rebuild_config(config: Optional[dict], table_rows: Iterable[dict]) -> dict[str, Any]:
    """
    Reconstruye el documento a partir de las filas persistidas por tabla.

    Cada fila: {table_name, settings, mapping: {fields, defaults}}.
    """
    cfg = copy.deepcopy(_as_dict(config))
    if not isinstance(cfg.get("flags"), dict):
        cfg["flags"] = {}
    for key in LEGACY_GLOBAL_KEYS:
        cfg.pop(key, None)
    tables: dict[str, Any] = {k: dict(_as_dict(v)) for k, v in _as_dict(cfg.get("tables")).items()}

    for row in sorted((r for r in table_rows if isinstance(r, dict)), key=lambda r: str(r.get("table_name") or "")):
        tname = str(row.get("table_name") or "")
        if not tname:
            continue
        entry = dict(_as_dict(tables.get(tname)))
        mapping = row.get("mapping")
        if isinstance(mapping, dict):
            fields = dict(_as_dict(entry.get("fields")))
            fields.update(copy.deepcopy(_as_dict(mapping.get("fields"))))
            for column, value in _as_dict(mapping.get("defaults")).items():
                promoted = promote_default(value)
                has = column in fields
                if not has or (_is_constant(promoted) and _is_path(fields[column])):
                    fields[column] = promoted
            if re.search(r"_group$", tname, re.IGNORECASE):
                fields = {
                    k: v for k, v in fields.items()
                    if not (v is not None and str(v) in ("", "=", '""', "''"))
                }
            entry["fields"] = fields
        settings = row.get("settings")
        if isinstance(settings, dict):
            entry["settings"] = {**_as_dict(entry.get("settings")), **copy.deepcopy(settings)}
        tables[tname] = entry

    shops = _positive_list(_as_dict(_as_dict(tables.get("product_shop")).get("settings")).get("id_shops"))
    langs = _positive_list(_as_dict(_as_dict(tables.get("product_lang")).get("settings")).get("id_langs"))

    def ensure(tname: str, key: str, values: list[int]) -> None:
        block = dict(_as_dict(tables.get(tname)))
        block["settings"] = {**_as_dict(block.get("settings")), key: list(values)}
        tables[tname] = block

    if shops:
        for tname in SHOP_SCOPED_TABLES:
            ensure(tname, "id_shops", shops)
    if langs:
        for tname in LANG_SCOPED_TABLES:
            ensure(tname, "id_langs", langs)

    image = tables.get("image")
    if isinstance(image, dict) and "setting_image" in image:
        image = dict(image)
        image.pop("setting_image")
        tables["image"] = image

    product_lang = dict(_as_dict(tables.get("product_lang")))
    pl_fields = dict(_as_dict(product_lang.get("fields")))
    for column, default in PRODUCT_LANG_DEFAULTS.items():
        if not pl_fields.get(column):
            pl_fields[column] = copy.deepcopy(default)
    product_lang["fields"] = pl_fields
    tables["product_lang"] = product_lang

    cfg["tables"] = tables
    return cfg
