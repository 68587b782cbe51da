"""
Repositorio de perfiles de conexion al catalogo destino.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.infrastructure.database.models import DbProfileModel
from catalog_sync.infrastructure.external.catalog_store.connection import TargetProfile


class DbProfileRepository:
    """Lectura de db_profiles."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, profile_id: int) -> Optional[TargetProfile]:
        row = await self.db.get(DbProfileModel, int(profile_id))
        if row is None:
            return None
        return TargetProfile(
            id=row.id,
            name=row.name or "",
            host=row.host or "localhost",
            port=int(row.port or 3306),
            database=row.database or "",
            user=row.user or "",
            password=row.password or "",
            ssl=bool(row.ssl),
            driver=row.driver or None,
        )

    async def create(self, **values) -> DbProfileModel:
        profile = DbProfileModel(**values)
        self.db.add(profile)
        await self.db.flush()
        await self.db.refresh(profile)
        return profile
