"""
Middleware para manejo centralizado de errores no controlados.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from odbc_bridge.shared.utils.masking import mask_connection_string


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convierte excepciones inesperadas en una respuesta JSON 500."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            # Los errores de driver pueden traer la connection string completa
            error_msg = mask_connection_string(str(exc))
            logger.opt(exception=exc).error(
                "Error no manejado en {} {}: {}", request.method, request.url.path, error_msg
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "INTERNAL_SERVER_ERROR",
                    "message": "Ha ocurrido un error interno del servidor",
                    "details": {},
                },
            )
