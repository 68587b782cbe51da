"""
Middleware para manejo centralizado de errores no controlados.

Los AppException (configuracion, mapeo inexistente, destino caido) los
resuelve el exception handler de la app; aqui solo llega lo inesperado.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Registra el error con la ruta afectada y responde un 500 generico."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            route = f"{request.method} {request.url.path}"
            logger.opt(exception=exc).error(f"Error no manejado en {route}: {type(exc).__name__}: {exc}")

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "INTERNAL_SERVER_ERROR",
                    "message": "Ha ocurrido un error interno del servidor",
                    "details": {"route": route}
                }
            )
