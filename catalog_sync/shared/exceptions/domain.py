"""
Excepciones relacionadas con la lógica de dominio.

Solo los errores de configuración cortan una sincronización: el resto
(resolución, schema, escritura por fila, matching) se degradan a contadores.
"""
from typing import Optional

from catalog_sync.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepción base para errores de dominio."""
    
    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class MappingNotFoundException(DomainException):
    """Excepcion cuando no existe configuracion de mapeo para (domain, page_type)."""
    
    def __init__(self, domain: str, page_type: str, version: Optional[int] = None):
        label = f"v{version}" if version is not None else "latest"
        super().__init__(
            message=f"No hay mapeo para {domain}/{page_type} ({label})",
            error_code="MAPPING_NOT_FOUND",
            details={"domain": domain, "page_type": page_type, "version": version}
        )
        self.status_code = 404


class ConfigurationException(DomainException):
    """
    Error de configuracion (perfil de conexion, tiendas, grupos...).

    Se reporta de inmediato y no se intenta trabajo parcial.
    """
    
    def __init__(self, reason: str, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            error_code=reason,
            details=details
        )
        self.reason = reason
        self.status_code = 422
