"""
Excepcion base para todas las excepciones del puente ODBC.
"""
from typing import Optional, Dict, Any


class AppException(Exception):
    """
    Excepcion base de la aplicacion.
    Todas las excepciones personalizadas deben heredar de esta clase.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Inicializa la excepcion.

        Args:
            message: Mensaje de error descriptivo
            status_code: Codigo de estado HTTP cuando la excepcion llega a la API
            error_code: Codigo de error estable (se usa tambien como clasificacion
                del DeliveryOutcome cuando una etapa del pipeline falla)
            details: Detalles adicionales del error
        """
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Representacion serializable usada por el handler HTTP."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }
