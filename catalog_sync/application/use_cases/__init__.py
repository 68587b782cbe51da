"""
Casos de uso de la aplicacion.
"""
from .sync_use_cases import SyncUseCases
from .mapping_use_cases import MappingUseCases
from .category_use_cases import CategoryUseCases

__all__ = ["SyncUseCases", "MappingUseCases", "CategoryUseCases"]
