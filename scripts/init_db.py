"""
Script para inicializar el config store (mapping_tools, mapping_table_settings, db_profiles).

Uso:
    python -m scripts.init_db
"""
import asyncio
from loguru import logger

from catalog_sync.infrastructure.database.session import close_db, init_db


async def main():
    """Función principal para inicializar la base de datos."""
    logger.info("Inicializando base de datos...")
    
    try:
        created = await init_db()
        if created:
            logger.success("Base de datos inicializada correctamente")
    except Exception as e:
        logger.error(f"Error al inicializar base de datos: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
