"""
Servicios de aplicacion.

Logica pura del motor de sincronizacion: no abre conexiones ni sesiones,
recibe el probe de esquema y el catalogo ya leidos.
"""
from catalog_sync.application.services.field_resolver import FieldResolver, to_int, to_number
from catalog_sync.application.services.catalog_matcher import CatalogMatcher, MatchResult
from catalog_sync.application.services.config_merge import (
    merge_table_config,
    normalize_fields_only,
    rebuild_config,
)
from catalog_sync.application.services.fanout_planner import FanOutPlanner, resolve_dimensions

__all__ = [
    # Resolucion de campos
    "FieldResolver",
    "to_int",
    "to_number",
    # Matching de catalogo
    "CatalogMatcher",
    "MatchResult",
    # Config Rebuilder
    "merge_table_config",
    "normalize_fields_only",
    "rebuild_config",
    # Planificacion
    "FanOutPlanner",
    "resolve_dimensions",
]
