"""
Casos de uso para pasadas de sincronizacion (preview / apply).
"""
import asyncio
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from catalog_sync.core.config import settings
from catalog_sync.domain.entities.mapping import MappingConfig
from catalog_sync.infrastructure.external.catalog_store.connection import TargetProfile, TargetStoreFactory
from catalog_sync.infrastructure.external.catalog_store.sync_service import CatalogSyncService, SyncOptions
from catalog_sync.infrastructure.repositories.db_profile_repository import DbProfileRepository
from catalog_sync.infrastructure.repositories.mapping_repository import MappingRepository
from catalog_sync.shared.exceptions.domain import ConfigurationException, MappingNotFoundException


async def load_mapping_config(
    repository: MappingRepository,
    domain: str,
    page_type: str,
    version: Optional[int] = None,
) -> MappingConfig:
    """
    Carga el documento (version concreta o vigente) como MappingConfig.

    Raises:
        MappingNotFoundException: No hay documento para (domain, page_type)
        ConfigurationException: El documento no declara tablas (invalid_mapping)
    """
    row = (
        await repository.get_version(domain, page_type, version)
        if version is not None
        else await repository.get_latest(domain, page_type)
    )
    if row is None:
        raise MappingNotFoundException(domain, page_type, version)
    config = MappingConfig.from_document(
        row.config,
        domain=row.domain,
        page_type=row.page_type,
        version=row.version,
        default_prefix=settings.DEFAULT_TABLE_PREFIX,
    )
    if not config.tables:
        raise ConfigurationException(
            "invalid_mapping",
            f"El mapeo {row.domain}/{row.page_type} v{row.version} no declara tablas",
            {"domain": row.domain, "page_type": row.page_type, "version": row.version},
        )
    return config


async def resolve_profile(profiles: DbProfileRepository, profile_id: Optional[int]) -> TargetProfile:
    """
    Raises:
        ConfigurationException: missing_profile / profile_not_found
    """
    if not profile_id:
        raise ConfigurationException("missing_profile", "El mapeo no declara profile_id")
    profile = await profiles.get(profile_id)
    if profile is None:
        raise ConfigurationException(
            "profile_not_found",
            f"Perfil de conexion {profile_id} no encontrado",
            {"profile_id": profile_id},
        )
    return profile


class SyncUseCases:
    """
    Orquesta una pasada para un registro fuente.

    Los errores de configuracion se lanzan antes de abrir la conexion al
    destino; el trabajo bloqueante corre en asyncio.to_thread.
    """

    def __init__(self, db: AsyncSession, factory: TargetStoreFactory):
        self.db = db
        self.mappings = MappingRepository(db)
        self.profiles = DbProfileRepository(db)
        self.service = CatalogSyncService(factory, catalog_kind=settings.CATALOG_KIND)

    async def preview(
        self,
        domain: str,
        page_type: str,
        record: Dict[str, Any],
        version: Optional[int] = None,
        product_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await self.run("preview", domain, page_type, record, version, product_id)

    async def apply(
        self,
        domain: str,
        page_type: str,
        record: Dict[str, Any],
        version: Optional[int] = None,
        product_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        return await self.run("apply", domain, page_type, record, version, product_id)

    async def run(
        self,
        mode: str,
        domain: str,
        page_type: str,
        record: Dict[str, Any],
        version: Optional[int] = None,
        product_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        config = await load_mapping_config(self.mappings, domain, page_type, version)
        profile = await resolve_profile(self.profiles, config.profile_id)
        options = SyncOptions(
            mode=mode,
            entity_id=product_id,
            log_truncations=settings.TRUNCATE_LOG_ENABLED,
        )
        summary = await asyncio.to_thread(self.service.run, profile, config, record, options)
        logger.info(
            f"Pasada {mode} {config.domain}/{config.page_type}: "
            f"candidatas={summary['candidates']} aplicadas={summary['applied']} "
            f"fallidas={summary['failed']} omitidas={summary['skipped']}"
        )
        return summary
