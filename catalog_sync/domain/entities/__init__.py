"""
Entidades del dominio.
"""
from catalog_sync.domain.entities.source_value import SourceKind, SourceValue
from catalog_sync.domain.entities.mapping import MappingConfig, TableConfig
from catalog_sync.domain.entities.plan import (
    DimensionSets,
    Operation,
    Placeholder,
    Plan,
    PlanRow,
    SkippedTable
)

__all__ = [
    "SourceKind",
    "SourceValue",
    "MappingConfig",
    "TableConfig",
    "DimensionSets",
    "Operation",
    "Placeholder",
    "Plan",
    "PlanRow",
    "SkippedTable"
]
