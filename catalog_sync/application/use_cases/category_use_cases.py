"""
Casos de uso para matching y asociacion de categorias.
"""
import asyncio
from typing import Optional, List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.application.use_cases.sync_use_cases import load_mapping_config, resolve_profile
from catalog_sync.core.config import settings
from catalog_sync.domain.entities.mapping import MappingConfig
from catalog_sync.infrastructure.external.catalog_store.connection import TargetStoreFactory
from catalog_sync.infrastructure.external.catalog_store.sync_service import CategoryItem, CategoryLinkService
from catalog_sync.infrastructure.repositories.db_profile_repository import DbProfileRepository
from catalog_sync.infrastructure.repositories.mapping_repository import MappingRepository


def _noise(config: Optional[MappingConfig]) -> List[str]:
    if config is None:
        return []
    cats = config.get("categories")
    if not isinstance(cats, dict):
        return []
    return [str(n) for n in (cats.get("noise") or []) if n]


class CategoryUseCases:
    """Paso de categorias independiente de la pasada principal."""

    def __init__(self, db: AsyncSession, factory: TargetStoreFactory):
        self.db = db
        self.mappings = MappingRepository(db)
        self.profiles = DbProfileRepository(db)
        self.service = CategoryLinkService(factory, catalog_kind=settings.CATALOG_KIND)

    async def match(
        self,
        profile_id: int,
        label: str,
        labels: Optional[List[str]] = None,
        prefix: Optional[str] = None,
    ) -> Dict[str, Any]:
        profile = await resolve_profile(self.profiles, profile_id)
        return await asyncio.to_thread(
            self.service.match,
            profile,
            prefix or settings.DEFAULT_TABLE_PREFIX,
            label,
            labels or [],
        )

    async def apply(
        self,
        items: List[Dict[str, Any]],
        profile_id: Optional[int] = None,
        prefix: Optional[str] = None,
        id_shops: Optional[List[int]] = None,
        domain: Optional[str] = None,
        page_type: str = "product",
    ) -> Dict[str, Any]:
        """
        Asocia categorias a productos existentes.

        Con `domain` se usa el mapeo vigente: aporta profile_id, prefijo,
        tiendas de product_shop y patrones de ruido.
        """
        config = await load_mapping_config(self.mappings, domain, page_type) if domain else None
        profile = await resolve_profile(self.profiles, profile_id or (config.profile_id if config else None))
        effective_prefix = prefix or (config.prefix if config else settings.DEFAULT_TABLE_PREFIX)
        category_items = [
            CategoryItem(
                product_id=int(item["product_id"]),
                category=str(item.get("category") or ""),
                categories=tuple(str(c) for c in (item.get("categories") or []) if c),
            )
            for item in items
        ]
        return await asyncio.to_thread(
            lambda: self.service.apply(
                profile,
                effective_prefix,
                category_items,
                id_shops=id_shops,
                config=config,
                noise=_noise(config),
            )
        )
