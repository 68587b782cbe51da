"""
Repositorio de documentos de mapeo versionados y settings por tabla.
"""
from typing import Optional, List, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from loguru import logger

from catalog_sync.application.services.config_merge import merge_table_config, normalize_fields_only
from catalog_sync.domain.entities.mapping import normalize_domain
from catalog_sync.infrastructure.database.models import MappingToolModel, TableSettingsModel


def _page_type(page_type: Optional[str]) -> str:
    return str(page_type or "product").strip().lower()


class MappingRepository:
    """
    Persistencia de mapping_tools y mapping_table_settings.

    Proporciona metodos para:
    - Leer la version vigente o una version concreta
    - Guardar (nueva version con bump o actualizacion en sitio)
    - Espejar settings/fields por tabla para el Config Rebuilder
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_latest(self, domain: str, page_type: str) -> Optional[MappingToolModel]:
        """
        Version vigente: mayor version, desempate por updated_at mas reciente.
        """
        query = (
            select(MappingToolModel)
            .where(
                MappingToolModel.domain == normalize_domain(domain),
                MappingToolModel.page_type == _page_type(page_type),
            )
            .order_by(
                MappingToolModel.version.desc(),
                MappingToolModel.updated_at.desc(),
                MappingToolModel.id.desc(),
            )
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_version(self, domain: str, page_type: str, version: int) -> Optional[MappingToolModel]:
        query = (
            select(MappingToolModel)
            .where(
                MappingToolModel.domain == normalize_domain(domain),
                MappingToolModel.page_type == _page_type(page_type),
                MappingToolModel.version == int(version),
            )
            .order_by(MappingToolModel.updated_at.desc(), MappingToolModel.id.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_versions(self, domain: str, page_type: str) -> List[MappingToolModel]:
        """Versiones existentes, la mas nueva primero."""
        query = (
            select(MappingToolModel)
            .where(
                MappingToolModel.domain == normalize_domain(domain),
                MappingToolModel.page_type == _page_type(page_type),
            )
            .order_by(MappingToolModel.version.desc(), MappingToolModel.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _max_version(self, domain: str, page_type: str) -> int:
        query = select(func.max(MappingToolModel.version)).where(
            MappingToolModel.domain == domain,
            MappingToolModel.page_type == page_type,
        )
        result = await self.db.execute(query)
        return int(result.scalar() or 0)

    async def save(
        self,
        domain: str,
        page_type: str,
        config: Dict[str, Any],
        bump: bool = False,
        name: Optional[str] = None,
    ) -> MappingToolModel:
        """
        Guarda un documento de mapeo.

        El documento entrante se normaliza (solo fields) y se fusiona con la
        version vigente. Primera vez o bump=True: inserta max+1. Si no,
        actualiza la version vigente en sitio.

        Args:
            domain: Dominio (se normaliza)
            page_type: Tipo de pagina
            config: Documento entrante
            bump: Crear una version nueva
            name: Nombre descriptivo opcional

        Returns:
            MappingToolModel: Fila guardada
        """
        domain = normalize_domain(domain)
        page_type = _page_type(page_type)
        latest = await self.get_latest(domain, page_type)
        merged = merge_table_config(latest.config if latest else {}, normalize_fields_only(config))

        if latest is None or bump:
            version = await self._max_version(domain, page_type) + 1
            row = MappingToolModel(
                domain=domain,
                page_type=page_type,
                version=version,
                name=name or (latest.name if latest else None),
                config=merged,
            )
            self.db.add(row)
        else:
            row = latest
            row.config = merged
            if name:
                row.name = name

        await self.db.flush()
        await self.mirror_table_settings(domain, page_type, merged)
        await self.db.refresh(row)
        logger.info(f"Mapeo guardado {domain}/{page_type} v{row.version} (bump={bump})")
        return row

    async def replace_config(self, row: MappingToolModel, config: Dict[str, Any]) -> MappingToolModel:
        """Sustituye el documento de una version existente (rebuild)."""
        row.config = config
        await self.db.flush()
        await self.db.refresh(row)
        return row

    async def mirror_table_settings(self, domain: str, page_type: str, config: Dict[str, Any]) -> int:
        """
        Copia settings y fields de cada tabla a mapping_table_settings.

        Returns:
            int: Numero de tablas espejadas
        """
        tables = config.get("tables") if isinstance(config.get("tables"), dict) else {}
        existing = {
            r.table_name: r
            for r in await self._table_settings_rows(domain, page_type)
        }
        count = 0
        for table_name, block in tables.items():
            block = block if isinstance(block, dict) else {}
            settings = block.get("settings") if isinstance(block.get("settings"), dict) else {}
            fields = block.get("fields") if isinstance(block.get("fields"), dict) else {}
            row = existing.get(table_name)
            if row is None:
                self.db.add(TableSettingsModel(
                    domain=domain,
                    page_type=page_type,
                    table_name=table_name,
                    settings=dict(settings),
                    mapping={"fields": dict(fields)},
                ))
            else:
                row.settings = dict(settings)
                previous = row.mapping if isinstance(row.mapping, dict) else {}
                row.mapping = {**previous, "fields": dict(fields)}
            count += 1
        await self.db.flush()
        return count

    async def _table_settings_rows(self, domain: str, page_type: str) -> List[TableSettingsModel]:
        query = (
            select(TableSettingsModel)
            .where(
                TableSettingsModel.domain == domain,
                TableSettingsModel.page_type == page_type,
            )
            .order_by(TableSettingsModel.table_name)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_table_settings(self, domain: str, page_type: str) -> List[Dict[str, Any]]:
        """Filas por tabla como diccionarios (entrada de rebuild_config)."""
        rows = await self._table_settings_rows(normalize_domain(domain), _page_type(page_type))
        return [
            {
                "table_name": r.table_name,
                "settings": r.settings,
                "mapping": r.mapping,
                "columns": r.columns,
            }
            for r in rows
        ]
