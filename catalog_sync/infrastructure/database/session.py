"""
Gestión de sesiones de base de datos (config store).
"""
from typing import AsyncGenerator, Optional
from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker
)
from sqlalchemy.orm import declarative_base

from catalog_sync.core.config import settings


# Base para modelos de SQLAlchemy
Base = declarative_base()


def _create_engine_args(url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL usa pool de conexiones, SQLite no lo soporta.
    """
    args = {
        "echo": settings.DEBUG,
        "future": True,
    }

    # Configuracion de pool solo para PostgreSQL
    if "postgresql" in url:
        args.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
        })

    return args


# Engine de base de datos
engine = create_async_engine(
    settings.effective_database_url,
    **_create_engine_args(settings.effective_database_url)
)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Generador de sesiones de base de datos.
    Para usar como dependencia en FastAPI.

    Yields:
        AsyncSession: Sesión de base de datos
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


class DatabaseBootstrap:
    """
    Fase explicita de inicializacion del esquema del config store.

    Se ejecuta una sola vez por proceso (startup); las llamadas siguientes
    no vuelven a tocar la base. create_all es idempotente (create-if-missing).
    """

    def __init__(self, db_engine: Optional[AsyncEngine] = None):
        self._engine = db_engine or engine
        self._done = False

    @property
    def initialized(self) -> bool:
        return self._done

    async def run(self) -> bool:
        """True si esta llamada inicializo el esquema, False si ya estaba hecho."""
        if self._done:
            return False
        # Registrar modelos en Base.metadata
        from catalog_sync.infrastructure.database import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        self._done = True
        logger.info("Esquema del config store verificado")
        return True


# Bootstrap unico del proceso
bootstrap = DatabaseBootstrap()


async def init_db() -> bool:
    """Inicializa la base de datos creando todas las tablas (una vez por proceso)."""
    return await bootstrap.run()


async def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    await engine.dispose()
