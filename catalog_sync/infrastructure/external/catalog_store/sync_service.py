"""
Servicio de sincronizacion registro fuente -> catalogo destino.

Diseño (resumen):
- Abre UNA conexion por pasada (TargetStoreFactory.connect) y la libera siempre
- Probe de esquema memoizado por pasada
- Resuelve dimensiones (tiendas / idiomas / grupos)
- Lee el catalogo vivo solo si el mapeo declara `categories`
- Planifica (determinista) y ejecuta en modo preview o apply

Estrategia de idempotencia:
- Upsert por clave primaria o por `settings.keys`
- Alta de la entidad base buscando primero por clave natural (reference)
- Asociaciones con insert-ignore
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from loguru import logger

from catalog_sync.application.services.catalog_matcher import CatalogMatcher
from catalog_sync.application.services.fanout_planner import FanOutPlanner, category_link_rows, resolve_dimensions
from catalog_sync.domain.entities.mapping import MappingConfig, positive_ints
from catalog_sync.domain.entities.plan import DimensionSets, Plan, render_value
from catalog_sync.shared.result import Err

from .catalog_reader import read_active_ids, read_catalog
from .connection import TargetProfile, TargetStoreFactory
from .plan_executor import ExecutionResult, PlanExecutor, render_preview
from .schema_probe import SchemaProbe


@dataclass(frozen=True)
class SyncOptions:
    mode: str = "preview"
    entity_id: Optional[int] = None
    log_truncations: bool = True


class CatalogSyncService:
    """
    Orquestador de una pasada para un registro.
    """

    def __init__(self, factory: TargetStoreFactory, *, catalog_kind: str = "category") -> None:
        self._factory = factory
        self._catalog_kind = catalog_kind

    def run(self, profile: TargetProfile, config: MappingConfig, record: Any, options: SyncOptions) -> dict[str, Any]:
        """
        Ejecuta la pasada completa y devuelve el resumen estructurado.
        """
        logger.info(
            f"Pasada {options.mode} {config.domain}/{config.page_type} "
            f"(version={config.version}, perfil={profile.id}, entidad={options.entity_id})"
        )
        with self._factory.connect(profile) as conn:
            probe = SchemaProbe(conn)
            prefix = config.prefix

            def load_groups() -> list[int]:
                res = read_active_ids(probe, prefix, "group")
                if isinstance(res, Err):
                    logger.warning(f"Grupos activos no disponibles: {res.message}")
                return res.unwrap_or([])

            dimensions = resolve_dimensions(config, group_loader=load_groups)

            catalog: Optional[list[dict]] = None
            if isinstance(config.get("categories"), dict) and not config.is_category_mode:
                res = read_catalog(probe, prefix, self._catalog_kind)
                if isinstance(res, Err):
                    logger.warning(f"Catalogo no disponible, categorias sin asociar: {res.message}")
                catalog = res.unwrap_or([])

            planner = FanOutPlanner(config, probe, log_truncations=options.log_truncations)
            plan = planner.plan(record, dimensions=dimensions, entity_id=options.entity_id, catalog=catalog)

            executor = PlanExecutor(probe)
            result = executor.execute(plan, options.mode)
            return self._summary(config, plan, result, probe)

    @staticmethod
    def _summary(config: MappingConfig, plan: Plan, result: ExecutionResult, probe: SchemaProbe) -> dict[str, Any]:
        payload = result.to_dict()
        payload["domain"] = config.domain
        payload["page_type"] = config.page_type
        payload["version"] = config.version
        payload["dimensions"] = plan.dimensions.to_dict()
        payload["skipped_tables"] = [
            {"table": s.table, "reason": s.reason, **{k: render_value(v) for k, v in s.details.items()}}
            for s in plan.skipped
        ]
        payload["probe_failures"] = [f.message for f in probe.failures]
        if result.mode == "preview":
            payload["plan"] = render_preview(plan)
        return payload


# =========================================================================
# CATEGORIAS (paso independiente)
# =========================================================================

@dataclass(frozen=True)
class CategoryItem:
    product_id: int
    category: str = ""
    categories: tuple[str, ...] = ()


class CategoryLinkService:
    """
    Matching y asociacion de categorias para productos ya existentes.
    """

    def __init__(self, factory: TargetStoreFactory, *, catalog_kind: str = "category") -> None:
        self._factory = factory
        self._catalog_kind = catalog_kind

    def match(
        self,
        profile: TargetProfile,
        prefix: str,
        label: str,
        labels: Iterable[str] = (),
        noise: Iterable[str] = (),
    ) -> dict[str, Any]:
        with self._factory.connect(profile) as conn:
            probe = SchemaProbe(conn)
            res = read_catalog(probe, prefix, self._catalog_kind)
            if isinstance(res, Err):
                logger.warning(f"Catalogo no disponible: {res.message}")
            matcher = CatalogMatcher.from_rows(res.unwrap_or([]), noise)
            result = matcher.match(label, list(labels))
            payload = result.to_dict()
            payload["label"] = label
            payload["catalog_size"] = len(matcher.entries)
            return payload

    def apply(
        self,
        profile: TargetProfile,
        prefix: str,
        items: Iterable[CategoryItem],
        *,
        id_shops: Optional[list[int]] = None,
        config: Optional[MappingConfig] = None,
        noise: Iterable[str] = (),
    ) -> dict[str, Any]:
        """
        Para cada producto: best desde la etiqueta principal, all desde todas,
        asociaciones insert-ignore y id_category_default en product / product_shop.
        """
        totals = {"linked": 0, "defaultsSet": 0, "missing": 0, "failed": 0}
        details: list[dict[str, Any]] = []
        with self._factory.connect(profile) as conn:
            probe = SchemaProbe(conn)
            shops = positive_ints(id_shops or [])
            if not shops and config is not None:
                shops = config.table_ids("product_shop", "id_shops")
            if not shops:
                shops = read_active_ids(probe, prefix, "shop").unwrap_or([])

            res = read_catalog(probe, prefix, self._catalog_kind)
            if isinstance(res, Err):
                logger.warning(f"Catalogo no disponible: {res.message}")
            matcher = CatalogMatcher.from_rows(res.unwrap_or([]), noise)
            executor = PlanExecutor(probe)
            dims = DimensionSets(shops=tuple(shops))

            for item in items:
                label = (item.category or (item.categories[0] if item.categories else "")).strip()
                result = matcher.match(label, item.categories) if label else None
                if result is None or result.best is None:
                    totals["missing"] += 1
                    details.append({"product_id": item.product_id, "label": label, "best": None, "all": []})
                    continue
                plan = Plan(dimensions=dims, entity_id=item.product_id)
                plan.add_rows(category_link_rows(probe, prefix, item.product_id, result.best, result.all, shops))
                outcome = executor.apply(plan)
                counters = outcome.categories.to_dict()
                for k in ("linked", "defaultsSet", "failed"):
                    totals[k] += counters[k]
                details.append({
                    "product_id": item.product_id,
                    "label": label,
                    "best": result.best,
                    "all": result.all,
                    **counters,
                })
        logger.info(f"Categorias aplicadas: {totals}")
        return {**totals, "id_shops": shops, "items": details}

