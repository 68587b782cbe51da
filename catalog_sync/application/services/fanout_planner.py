"""
Planificador fan-out: un registro fuente -> filas por tabla x tienda x idioma x grupo.

Flujo por pasada:
    1. resolve_dimensions(): conjuntos efectivos de tiendas / idiomas / grupos
    2. plan(): por cada tabla configurada que exista en el destino,
       producto cartesiano de las dimensiones que la tabla declara por columna
       (id_shop, id_lang, id_group) y una fila por combinacion
    3. plan_category_links(): filas de asociacion con el catalogo vivo

La planificacion es determinista y no escribe nada; el executor decide si
aplica o solo previsualiza.
"""
from __future__ import annotations

from datetime import datetime
from itertools import product as cartesian
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from catalog_sync.application.interfaces.target_store import ColumnInfo, SchemaProbePort
from catalog_sync.application.services.catalog_matcher import CatalogMatcher
from catalog_sync.application.services.field_resolver import (
    FieldResolver,
    as_text,
    is_blank,
    slugify,
    to_int,
    to_number,
)
from catalog_sync.domain.entities.mapping import MappingConfig, positive_ints
from catalog_sync.domain.entities.plan import (
    NEXT_POSITION,
    CategoryLinkPlan,
    DimensionSets,
    Operation,
    Placeholder,
    Plan,
    PlanRow,
    SkippedTable,
)


ENTITY_ID_COLUMNS = ("id_product", "id_category")
DIMENSION_COLUMNS = {"id_shop": "id_shops", "id_lang": "id_langs", "id_group": "id_groups"}
DEFAULT_NATURAL_KEYS = {"product": ["reference"]}
_NA_VALUES = {"n/a", "na", "n.a.", "-"}


def _is_na(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in _NA_VALUES


def _first_positive(*values: Any) -> int:
    for v in values:
        ids = positive_ints([v])
        if ids:
            return ids[0]
    return 0


# =========================================================================
# DIMENSIONES
# =========================================================================

def resolve_dimensions(
    config: MappingConfig,
    *,
    group_loader: Optional[Callable[[], Iterable[int]]] = None,
) -> DimensionSets:
    """
    Conjuntos efectivos de la pasada.

    - tiendas: product_shop -> product_attribute_shop -> category_shop -> id_shops global
    - idiomas: tabla _lang del modo -> la otra -> id_langs global -> [id_lang] (salvo strict)
    - grupos:  category_group -> id_groups global -> group_loader() (grupos activos)
    """
    shops = (
        config.table_ids("product_shop", "id_shops")
        or config.table_ids("product_attribute_shop", "id_shops")
        or config.table_ids("category_shop", "id_shops")
        or config.global_ids("id_shops")
    )

    id_lang = _first_positive(config.get("id_lang")) or 1
    lang_tables = ("category_lang", "product_lang") if config.is_category_mode else ("product_lang", "category_lang")
    langs = (
        config.table_ids(lang_tables[0], "id_langs")
        or config.table_ids(lang_tables[1], "id_langs")
        or config.global_ids("id_langs")
    )
    if not langs and not config.strict:
        langs = [id_lang]

    groups = config.table_ids("category_group", "id_groups") or config.global_ids("id_groups")
    if not groups and group_loader is not None and _needs_groups(config):
        groups = positive_ints(list(group_loader()))

    product_settings = config.table(config.base_table)
    id_shop_default = _first_positive(
        config.get("id_shop_default"),
        product_settings.settings.get("id_shop_default") if product_settings else None,
        shops[0] if shops else None,
    )

    dims = DimensionSets(
        shops=tuple(shops),
        langs=tuple(langs),
        groups=tuple(groups),
        id_shop_default=id_shop_default,
        id_shop_group=to_int(config.get("id_shop_group") or 0),
        id_lang=id_lang,
    )
    logger.info(
        f"Dimensiones efectivas {config.domain}/{config.page_type}: "
        f"shops={list(dims.shops)} langs={list(dims.langs)} groups={list(dims.groups)} "
        f"id_shop_default={dims.id_shop_default}"
    )
    return dims


def _needs_groups(config: MappingConfig) -> bool:
    return any(name.endswith("_group") and name != "attribute_group" for name in config.tables)


# =========================================================================
# PLANIFICADOR
# =========================================================================

class FanOutPlanner:
    """
    Expande un registro fuente en filas candidatas.

    Uso:
        planner = FanOutPlanner(config, probe)
        plan = planner.plan(record, dimensions=resolve_dimensions(config))
    """

    def __init__(self, config: MappingConfig, probe: SchemaProbePort, *, log_truncations: bool = True):
        self.config = config
        self.probe = probe
        self.log_truncations = log_truncations

    # -- API principal --

    def plan(
        self,
        record: Any,
        *,
        dimensions: DimensionSets,
        entity_id: Optional[int] = None,
        catalog: Optional[list[dict]] = None,
    ) -> Plan:
        resolver = FieldResolver(record)
        plan = Plan(
            dimensions=dimensions,
            entity_id=entity_id,
            entity_key="id_category" if self.config.is_category_mode else "id_product",
        )
        generated: set[str] = set()

        for name in self.config.ordered_table_names(self._allowed_tables()):
            rows = self._plan_table(name, resolver, plan, entity_id, generated)
            plan.add_rows(rows)
            for row in rows:
                if row.generates:
                    generated.add(row.generates)

        if self.config.force_min_combination and not self.config.is_category_mode:
            forced = self.plan_forced_combination(plan, entity_id=entity_id, generated=generated)
            plan.add_rows(forced)
            if forced:
                generated.add("id_product_attribute")

        if catalog is not None and not self.config.is_category_mode:
            self.plan_category_links(plan, resolver, catalog, entity_id=entity_id, generated=generated)

        logger.info(
            f"Plan {self.config.domain}/{self.config.page_type}: {plan.candidates} filas, "
            f"{len(plan.skipped)} tablas omitidas"
        )
        return plan

    def _allowed_tables(self) -> Optional[list[str]]:
        if not self.config.is_category_mode:
            return None
        return [n for n in self.config.tables if n == "category" or n.startswith("category_")]

    # -- Tablas --

    def _effective_fields(self, name: str) -> dict[str, Any]:
        """Campos de la tabla; las satelites heredan los de la tabla base que omiten."""
        block = self.config.table(name)
        own = dict(block.fields) if block else {}
        base = self.config.base_table
        if name == base:
            return own
        base_block = self.config.table(base)
        if not base_block:
            return own
        merged = {k: v for k, v in base_block.fields.items() if k not in ENTITY_ID_COLUMNS}
        merged.update(own)
        return merged

    def _dimension_lists(self, name: str, columns: dict[str, ColumnInfo], dims: DimensionSets) -> tuple[dict[str, list], Optional[str]]:
        """Listas por dimension para la tabla, o el motivo de omision."""
        block = self.config.table(name)
        out: dict[str, list] = {}
        for column, key in DIMENSION_COLUMNS.items():
            if column not in columns:
                out[column] = [None]
                continue
            own = block.ids(key) if block else []
            if column == "id_shop":
                values = own or list(dims.shops)
                if values and not self.config.strict and name in ("product_shop", "product_lang"):
                    if dims.id_shop_default and dims.id_shop_default not in values:
                        values = values + [dims.id_shop_default]
                if not values:
                    return out, "mapping_missing_shops"
            elif column == "id_lang":
                values = own or list(dims.langs)
                if not values:
                    return out, "mapping_missing_langs"
            else:
                values = own or list(dims.groups)
                if not values:
                    return out, "mapping_missing_groups"
            out[column] = values
        return out, None

    def _skip(self, plan: Plan, table: str, reason: str, **details: Any) -> None:
        logger.info(f"Tabla {table} omitida: {reason}")
        plan.skipped.append(SkippedTable(table=table, reason=reason, details=details))

    def _plan_table(
        self,
        name: str,
        resolver: FieldResolver,
        plan: Plan,
        entity_id: Optional[int],
        generated: set[str],
    ) -> list[PlanRow]:
        table = self.config.prefix + name
        if not self.probe.has_table(table):
            self._skip(plan, table, "missing_table")
            return []
        columns = self.probe.columns(table)
        if not columns:
            self._skip(plan, table, "no_columns")
            return []

        dim_lists, reason = self._dimension_lists(name, columns, plan.dimensions)
        if reason:
            self._skip(plan, table, reason)
            return []

        block = self.config.table(name)
        fields = self._effective_fields(name)
        constants = block.constant_settings() if block else {}
        key_cols = (block.keys if block else []) or self.probe.primary_key(table)

        rows: list[PlanRow] = []
        missing_pk = 0
        for sid, lid, gid in cartesian(dim_lists["id_shop"], dim_lists["id_lang"], dim_lists["id_group"]):
            dims = {"id_shop": sid, "id_lang": lid, "id_group": gid}
            values = self._build_values(name, columns, fields, constants, resolver, plan.dimensions, dims, entity_id, generated)
            values = self._normalize_types(table, columns, values, dims)
            if not values:
                continue
            row = self._keyed_row(name, table, columns, key_cols, values, dims)
            if row is None:
                missing_pk += 1
                continue
            rows.append(row)

        if missing_pk:
            self._skip(plan, table, "missing_pk", keys=list(key_cols), rows=missing_pk)
        if not rows and not missing_pk:
            self._skip(plan, table, "no_mapped_columns")
        return rows

    # -- Construccion de valores --

    def _build_values(
        self,
        name: str,
        columns: dict[str, ColumnInfo],
        fields: dict[str, Any],
        constants: dict[str, Any],
        resolver: FieldResolver,
        dimensions: DimensionSets,
        dims: dict[str, Optional[int]],
        entity_id: Optional[int],
        generated: set[str],
    ) -> dict[str, Any]:
        cfg = self.config
        base = cfg.base_table
        row: dict[str, Any] = {}

        if cfg.is_category_mode and name == "category" and not cfg.strict:
            for column, value in (("active", 1), ("position", 0), ("id_parent", 2)):
                if column in columns:
                    row[column] = value

        for column, spec in fields.items():
            if column not in columns:
                continue
            value = resolver.resolve(spec)
            if value is not None:
                row[column] = value

        if row.get("id_product_attribute") == "":
            del row["id_product_attribute"]

        for column, value in constants.items():
            if column in columns:
                row[column] = value

        for column in ("reference", "supplier_reference"):
            if column in columns and _is_na(row.get(column)):
                row[column] = ""
        if name == "product" and "supplier_reference" in columns and is_blank(row.get("supplier_reference")):
            sku = as_text(resolver.pick_value("sku")).strip()
            row["supplier_reference"] = "" if _is_na(sku) else sku

        base_id = "id_category" if cfg.is_category_mode else "id_product"
        # 0 o basura en un id de entidad equivale a vacio
        for column in ENTITY_ID_COLUMNS:
            if column not in columns or _first_positive(row.get(column)):
                continue
            row.pop(column, None)
            if column == base_id and entity_id:
                row[column] = int(entity_id)
            elif column in generated and column != f"id_{name}":
                row[column] = Placeholder(column)
        if "id_product_attribute" in columns and is_blank(row.get("id_product_attribute")):
            row["id_product_attribute"] = 0

        for column, value in dims.items():
            if value is not None and column in columns:
                row[column] = value
        if "id_shop_group" in columns and row.get("id_shop_group") is None:
            row["id_shop_group"] = dimensions.id_shop_group
        now = datetime.now().replace(microsecond=0)
        for column in ("date_add", "date_upd"):
            if column in columns and row.get(column) is None:
                row[column] = now

        if not cfg.strict:
            self._apply_defaults(name, columns, row, dimensions)

        if cfg.is_category_mode and name == "category_lang":
            title = as_text(resolver.pick_value("title") or resolver.pick_value("name")).strip()
            if "name" in columns and is_blank(row.get("name")):
                row["name"] = title or "Imported Category"
        if "link_rewrite" in columns:
            source = row.get("link_rewrite")
            if is_blank(source):
                source = row.get("name")
            if not is_blank(source):
                row["link_rewrite"] = slugify(source)
        return row

    def _apply_defaults(self, name: str, columns: dict[str, ColumnInfo], row: dict, dimensions: DimensionSets) -> None:
        cfg = self.config
        if name == "product":
            settings = cfg.table("product").settings if cfg.table("product") else {}
            if "active" in columns and is_blank(row.get("active")):
                row["active"] = 1
            for column in ("id_tax_rules_group", "id_category_default"):
                if column in columns and is_blank(row.get(column)):
                    row[column] = to_int(cfg.get(column, settings.get(column)) or 0)
            if "id_shop_default" in columns and is_blank(row.get("id_shop_default")):
                row["id_shop_default"] = dimensions.id_shop_default
        elif name == "category" and "id_shop_default" in columns:
            current = to_int(row.get("id_shop_default") or 0)
            shops = set(dimensions.shops)
            if current == 0 or (shops and current not in shops):
                row["id_shop_default"] = dimensions.shops[0] if dimensions.shops else dimensions.id_shop_default

    # -- Tipos --

    def _normalize_types(self, table: str, columns: dict[str, ColumnInfo], row: dict, dims: dict) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for column, value in row.items():
            info = columns.get(column)
            if info is None:
                continue
            if isinstance(value, Placeholder) or value is None:
                out[column] = value
                continue
            if isinstance(value, (list, tuple, dict)):
                value = as_text(value) if not isinstance(value, dict) else ""
            if info.kind == "integer":
                out[column] = 0 if value == "" else (int(value) if isinstance(value, (bool, int, float)) else to_int(value))
            elif info.kind == "numeric":
                out[column] = 0 if value == "" else (value if isinstance(value, (int, float)) and not isinstance(value, bool) else to_number(value))
            elif info.kind == "date":
                out[column] = None if value == "" else value
            else:
                text = value if isinstance(value, (str, datetime)) else as_text(value)
                if isinstance(text, str) and info.max_length and len(text) > info.max_length:
                    if self.log_truncations:
                        logger.info(
                            f"Truncado {table}.{column}: max={info.max_length} "
                            f"antes={len(text)} despues={info.max_length} dims={dims}"
                        )
                    text = text[: info.max_length]
                out[column] = text
        return out

    # -- Claves --

    def _keyed_row(
        self,
        name: str,
        table: str,
        columns: dict[str, ColumnInfo],
        key_cols: list[str],
        values: dict[str, Any],
        dims: dict[str, Optional[int]],
    ) -> Optional[PlanRow]:
        block = self.config.table(name)
        dims_used = {k: v for k, v in dims.items() if v is not None}
        missing = [k for k in key_cols if values.get(k) is None]
        if key_cols and not missing:
            return PlanRow(
                table=table,
                logical=name,
                operation=Operation.UPSERT,
                columns=values,
                key={k: values[k] for k in key_cols},
                dimensions=dims_used,
            )

        auto_insert = bool(block.settings.get("auto_insert")) if block else False
        single_pk = len(key_cols) == 1
        is_base_pk = name == self.config.base_table and single_pk and key_cols[0] == f"id_{name}"
        if not (single_pk and (is_base_pk or auto_insert)):
            return None

        pk = key_cols[0]
        insert_values = {k: v for k, v in values.items() if k != pk}
        if not insert_values:
            return None
        natural = block.natural_key if block and block.natural_key is not None else DEFAULT_NATURAL_KEYS.get(name, [])
        lookup = {}
        if natural and all(k in columns and not is_blank(insert_values.get(k)) for k in natural):
            lookup = {k: insert_values[k] for k in natural}
        return PlanRow(
            table=table,
            logical=name,
            operation=Operation.INSERT,
            columns=insert_values,
            generates=pk,
            lookup=lookup,
            dimensions=dims_used,
        )

    # -- Combinacion minima --

    def _product_ref(self, entity_id: Optional[int], generated: set[str]) -> Any:
        if entity_id:
            return int(entity_id)
        if "id_product" in generated:
            return Placeholder("id_product")
        return None

    def plan_forced_combination(
        self,
        plan: Plan,
        *,
        entity_id: Optional[int] = None,
        generated: Optional[set[str]] = None,
    ) -> list[PlanRow]:
        """
        Flag force_min_combination: una combinacion vacia por defecto.

        Planifica un product_attribute (alta con busqueda por id_product, asi
        una segunda pasada reutiliza la combinacion existente) y una fila
        product_attribute_shop por tienda con default_on=1. Las constantes de
        settings de ambas tablas se aplican como valores por defecto.
        """
        prefix = self.config.prefix
        pa_table = prefix + "product_attribute"
        pas_table = prefix + "product_attribute_shop"
        if plan.rows_for(pa_table):
            return []
        if not self.probe.has_table(pa_table):
            self._skip(plan, pa_table, "missing_table")
            return []
        product_ref = self._product_ref(entity_id, generated or set())
        if product_ref is None:
            logger.warning("No hay id_product para la combinacion minima")
            return []

        pa_columns = self.probe.columns(pa_table)
        pa_block = self.config.table("product_attribute")
        values: dict[str, Any] = dict(pa_block.constant_settings()) if pa_block else {}
        values["id_product"] = product_ref
        if "default_on" in pa_columns:
            values["default_on"] = 1
        values.pop("id_product_attribute", None)
        values = self._normalize_types(pa_table, pa_columns, values, {})
        rows = [PlanRow(
            table=pa_table,
            logical="product_attribute",
            operation=Operation.INSERT,
            columns=values,
            generates="id_product_attribute",
            lookup={"id_product": product_ref},
        )]

        if not self.probe.has_table(pas_table):
            self._skip(plan, pas_table, "missing_table")
            return rows
        if not plan.dimensions.shops:
            self._skip(plan, pas_table, "mapping_missing_shops")
            return rows

        pas_columns = self.probe.columns(pas_table)
        pas_block = self.config.table("product_attribute_shop")
        key_cols = self.probe.primary_key(pas_table) or ["id_product_attribute", "id_shop"]
        for sid in plan.dimensions.shops:
            shop_values: dict[str, Any] = dict(pas_block.constant_settings()) if pas_block else {}
            shop_values.update({
                "id_product": product_ref,
                "id_product_attribute": Placeholder("id_product_attribute"),
                "id_shop": sid,
            })
            if "default_on" in pas_columns:
                shop_values["default_on"] = 1
            shop_values = self._normalize_types(pas_table, pas_columns, shop_values, {"id_shop": sid})
            if any(k not in shop_values for k in key_cols):
                self._skip(plan, pas_table, "missing_pk", keys=list(key_cols), rows=len(plan.dimensions.shops))
                break
            rows.append(PlanRow(
                table=pas_table,
                logical="product_attribute_shop",
                operation=Operation.UPSERT,
                columns=shop_values,
                key={k: shop_values[k] for k in key_cols},
                dimensions={"id_shop": sid},
            ))
        logger.info(f"Combinacion minima planificada: {len(rows)} filas")
        return rows

    # -- Categorias --

    def plan_category_links(
        self,
        plan: Plan,
        resolver: FieldResolver,
        catalog: list[dict],
        *,
        entity_id: Optional[int] = None,
        generated: Optional[set[str]] = None,
    ) -> CategoryLinkPlan:
        """
        Matchea las etiquetas de categoria del registro contra el catalogo y
        agrega filas de asociacion (insert-ignore) y de categoria por defecto.
        """
        cats = self.config.get("categories")
        cats = cats if isinstance(cats, dict) else {}
        label_spec = cats.get("label", ["product.category", "category"])
        labels_spec = cats.get("labels", ["product.categories", "categories"])

        label = as_text(resolver.resolve(label_spec)).strip()
        raw_labels = resolver.resolve(labels_spec)
        labels: list[str] = []
        for item in raw_labels if isinstance(raw_labels, (list, tuple)) else [raw_labels]:
            if isinstance(item, dict):
                item = item.get("text") or item.get("name") or item.get("label")
            text = as_text(item).strip()
            if text and text not in labels:
                labels.append(text)
        if not label and labels:
            label = labels[0]

        link = CategoryLinkPlan(labels=[label] + [l for l in labels if l != label] if label else labels)
        plan.categories = link
        if not label:
            link.missing = True
            logger.info("Sin etiqueta de categoria en el registro")
            return link

        matcher = CatalogMatcher.from_rows(catalog, noise=cats.get("noise") or ())
        result = matcher.match(label, labels)
        link.best = result.best
        link.all = list(result.all)
        if result.best is None:
            link.missing = True
            logger.info(f"Categoria sin coincidencia en catalogo: '{label}'")
            return link

        product_ref = self._product_ref(entity_id, generated or set())
        if product_ref is None:
            link.missing = True
            logger.warning("No hay id_product para asociar categorias")
            return link

        link_table = str(cats.get("link_table") or "category_product")
        if not self.probe.has_table(self.config.prefix + link_table):
            self._skip(plan, self.config.prefix + link_table, "missing_table")
        plan.add_rows(category_link_rows(
            self.probe,
            self.config.prefix,
            product_ref,
            result.best,
            link.all,
            plan.dimensions.shops,
            link_table=link_table,
        ))
        logger.info(f"Categoria '{label}' -> best={result.best} all={link.all}")
        return link


def category_link_rows(
    probe: SchemaProbePort,
    prefix: str,
    product_ref: Any,
    best: int,
    all_ids: Iterable[int],
    shops: Iterable[int],
    *,
    link_table: str = "category_product",
) -> list[PlanRow]:
    """
    Filas de asociacion producto-categoria (insert-ignore) y de categoria por
    defecto en product y en cada product_shop.
    """
    rows: list[PlanRow] = []
    table = prefix + link_table
    if probe.has_table(table):
        has_position = probe.has_column(table, "position")
        for cid in all_ids:
            columns: dict[str, Any] = {"id_category": cid, "id_product": product_ref}
            if has_position:
                columns["position"] = NEXT_POSITION
            rows.append(PlanRow(
                table=table,
                logical=link_table,
                operation=Operation.INSERT_IGNORE,
                columns=columns,
                key={"id_category": cid, "id_product": product_ref},
                role="category_link",
            ))

    if probe.has_column(prefix + "product", "id_category_default"):
        rows.append(PlanRow(
            table=prefix + "product",
            logical="product",
            operation=Operation.UPDATE,
            columns={"id_category_default": best},
            key={"id_product": product_ref},
            role="category_default",
        ))
    if probe.has_column(prefix + "product_shop", "id_category_default"):
        for sid in shops:
            rows.append(PlanRow(
                table=prefix + "product_shop",
                logical="product_shop",
                operation=Operation.UPDATE,
                columns={"id_category_default": best},
                key={"id_product": product_ref, "id_shop": sid},
                dimensions={"id_shop": sid},
                role="category_default",
            ))
    return rows
