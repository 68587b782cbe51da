"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable
from fastapi import FastAPI
from loguru import logger

from catalog_sync.core.config import settings
from catalog_sync.infrastructure.database.session import init_db, close_db
from catalog_sync.infrastructure.external.catalog_store.catalog_reader import CATALOG_KINDS


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.
    
    Args:
        app: Instancia de FastAPI
        
    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa recursos al inicio de la aplicacion."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")
            
            # Validar configuracion critica
            _validate_config()
            
            # Bootstrap del config store (crea tablas si no existen, una vez por proceso)
            await init_db()
            logger.info("Base de datos inicializada")
            
            # Configurar logging adicional
            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL
            )
            
            logger.success("Aplicacion iniciada correctamente")
            
            # Mostrar URLs disponibles
            _print_available_urls()
            
        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise
    
    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []
    
    if not settings.DEFAULT_TABLE_PREFIX:
        warnings.append("DEFAULT_TABLE_PREFIX vacio - los mapeos sin prefix usaran nombres sin prefijo")
    if settings.REBUILD_TIMEOUT_SECONDS <= 0:
        warnings.append("REBUILD_TIMEOUT_SECONDS <= 0 - el rebuild tras guardar siempre expirara")
    if settings.CATALOG_KIND not in CATALOG_KINDS:
        warnings.append(f"CATALOG_KIND desconocido: {settings.CATALOG_KIND}")
    
    # Mostrar advertencias
    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    # Determinar la URL base de acceso
    if settings.HOST == "0.0.0.0":
        access_host = "localhost"
    else:
        access_host = settings.HOST
    
    base_url = f"http://{access_host}:{settings.PORT}"
    
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info("<bold><green>URLS DISPONIBLES:</green></bold>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Sync API:    {base_url}/api/v1/sync/preview</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.
    
    Args:
        app: Instancia de FastAPI
        
    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Libera recursos al cerrar la aplicacion."""
        logger.info("Cerrando aplicacion...")
        
        # Liberar pools de los catalogos destino
        factory = getattr(app.state, "target_factory", None)
        if factory is not None:
            disposed = factory.dispose_all()
            logger.info(f"Engines destino liberados: {disposed}")
        
        # Cerrar conexiones de base de datos
        await close_db()
        logger.info("Conexiones de base de datos cerradas")
        
        logger.success("Aplicacion cerrada correctamente")
    
    return shutdown
