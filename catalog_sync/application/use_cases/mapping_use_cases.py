"""
Casos de uso para documentos de mapeo (lectura, guardado, rebuild).
"""
import asyncio
from typing import Optional, List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from catalog_sync.application.services.config_merge import rebuild_config
from catalog_sync.core.config import settings
from catalog_sync.infrastructure.database.models import MappingToolModel
from catalog_sync.infrastructure.repositories.mapping_repository import MappingRepository
from catalog_sync.shared.exceptions.domain import MappingNotFoundException


class MappingUseCases:
    """
    Casos de uso del config store.

    Despues de cada guardado se intenta un rebuild acotado por
    REBUILD_TIMEOUT_SECONDS; si expira solo se registra un aviso.
    """

    def __init__(self, db: AsyncSession, rebuild_timeout: Optional[float] = None):
        self.db = db
        self.repository = MappingRepository(db)
        self.rebuild_timeout = settings.REBUILD_TIMEOUT_SECONDS if rebuild_timeout is None else rebuild_timeout

    async def get(self, domain: str, page_type: str, version: Optional[int] = None) -> MappingToolModel:
        row = (
            await self.repository.get_version(domain, page_type, version)
            if version is not None
            else await self.repository.get_latest(domain, page_type)
        )
        if row is None:
            raise MappingNotFoundException(domain, page_type, version)
        return row

    async def versions(self, domain: str, page_type: str) -> List[MappingToolModel]:
        return await self.repository.list_versions(domain, page_type)

    async def save(
        self,
        domain: str,
        page_type: str,
        config: Dict[str, Any],
        bump: bool = False,
        name: Optional[str] = None,
    ) -> MappingToolModel:
        """
        Guarda el documento y lanza el rebuild acotado en tiempo.

        Returns:
            MappingToolModel: Version guardada (reconstruida si el rebuild termino)
        """
        row = await self.repository.save(domain, page_type, config, bump=bump, name=name)
        try:
            row = await asyncio.wait_for(self.rebuild(domain, page_type), timeout=self.rebuild_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Rebuild de {row.domain}/{row.page_type} excedio {self.rebuild_timeout}s; "
                f"se conserva el documento guardado v{row.version}"
            )
        return row

    async def rebuild(self, domain: str, page_type: str) -> MappingToolModel:
        """
        Reconstruye la version vigente desde mapping_table_settings y la persiste.
        """
        latest = await self.get(domain, page_type)
        rows = await self.repository.list_table_settings(latest.domain, latest.page_type)
        rebuilt = rebuild_config(latest.config, rows)
        row = await self.repository.replace_config(latest, rebuilt)
        logger.info(
            f"Mapeo reconstruido {row.domain}/{row.page_type} v{row.version} "
            f"({len(rows)} tablas persistidas)"
        )
        return row
