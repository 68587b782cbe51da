"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import SyncRequestDTO, SyncResponseDTO, TableCountersDTO, SkippedTableDTO
from .mapping_dto import (
    MappingSaveDTO,
    MappingResponseDTO,
    MappingVersionDTO,
    MappingVersionsResponseDTO,
    MappingRebuildResponseDTO,
)
from .category_dto import (
    CategoryMatchRequestDTO,
    CategoryMatchResponseDTO,
    CategoryItemDTO,
    CategoryApplyRequestDTO,
    CategoryApplyResponseDTO,
)

__all__ = [
    "SyncRequestDTO",
    "SyncResponseDTO",
    "TableCountersDTO",
    "SkippedTableDTO",
    "MappingSaveDTO",
    "MappingResponseDTO",
    "MappingVersionDTO",
    "MappingVersionsResponseDTO",
    "MappingRebuildResponseDTO",
    "CategoryMatchRequestDTO",
    "CategoryMatchResponseDTO",
    "CategoryItemDTO",
    "CategoryApplyRequestDTO",
    "CategoryApplyResponseDTO",
]
