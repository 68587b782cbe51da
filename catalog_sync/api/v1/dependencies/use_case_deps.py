"""
Dependencias para inyeccion de casos de uso.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.application.use_cases.sync_use_cases import SyncUseCases
from catalog_sync.application.use_cases.mapping_use_cases import MappingUseCases
from catalog_sync.application.use_cases.category_use_cases import CategoryUseCases
from catalog_sync.api.v1.dependencies.repository_deps import get_target_factory
from catalog_sync.infrastructure.database.session import get_db
from catalog_sync.infrastructure.external.catalog_store.connection import TargetStoreFactory


async def get_sync_use_cases(
    db: AsyncSession = Depends(get_db),
    factory: TargetStoreFactory = Depends(get_target_factory)
) -> SyncUseCases:
    """
    Dependencia para obtener los casos de uso de sincronizacion.
    
    Args:
        db: Sesion de base de datos
        factory: Fabrica de conexiones al catalogo destino
        
    Returns:
        SyncUseCases: Instancia de casos de uso de sincronizacion
    """
    return SyncUseCases(db, factory)


async def get_mapping_use_cases(
    db: AsyncSession = Depends(get_db)
) -> MappingUseCases:
    """
    Dependencia para obtener los casos de uso de mapeos.
    
    Returns:
        MappingUseCases: Instancia de casos de uso de mapeos
    """
    return MappingUseCases(db)


async def get_category_use_cases(
    db: AsyncSession = Depends(get_db),
    factory: TargetStoreFactory = Depends(get_target_factory)
) -> CategoryUseCases:
    """Dependencia para obtener los casos de uso de categorias."""
    return CategoryUseCases(db, factory)
