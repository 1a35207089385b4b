"""
Taxonomia de errores del pipeline de sincronizacion.

- DatabaseConnectionError: no se pudo obtener un handle ODBC.
- QueryExecutionError: la consulta fallo en el driver.
- TransformationError: mapeo de columnas invalido (solo al guardar).
- DeliveryError: configuracion de entrega invalida o fallo definitivo.
"""
from typing import Any, Dict, List, Optional

from odbc_bridge.shared.constants.pipeline_constants import (
    ConnectionFailureKind,
    DeliveryStatus,
    QueryErrorKind,
)
from odbc_bridge.shared.exceptions.base import AppException


class PipelineException(AppException):
    """Excepcion base para errores de las etapas del pipeline."""

    def __init__(
        self,
        message: str,
        error_code: str = "PIPELINE_ERROR",
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class DatabaseConnectionError(PipelineException):
    """
    Todas las estrategias de connection string fallaron.

    Lleva el ultimo error del driver, la lista de intentos (ya enmascarados)
    y una sugerencia de diagnostico.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ConnectionFailureKind = ConnectionFailureKind.UNKNOWN,
        suggestion: str = "",
        attempts: Optional[List[str]] = None,
        last_error: Optional[BaseException] = None,
        profile_id: Any = None,
    ):
        self.kind = kind
        self.suggestion = suggestion
        self.attempts = list(attempts or [])
        self.last_error = last_error
        super().__init__(
            message=message,
            error_code="CONNECTION_ERROR",
            details={
                "profile_id": profile_id,
                "kind": kind.value,
                "suggestion": suggestion,
                "attempts": self.attempts,
            },
        )


class QueryExecutionError(PipelineException):
    """Error del driver clasificado en una categoria estable."""

    def __init__(self, kind: QueryErrorKind, original_message: str):
        self.kind = kind
        self.original_message = original_message
        super().__init__(
            message=f"Error en la consulta ({kind.value}): {original_message}",
            error_code="QUERY_ERROR",
            status_code=400 if kind in (QueryErrorKind.INVALID_INPUT, QueryErrorKind.SYNTAX) else 502,
            details={"kind": kind.value, "original_message": original_message},
        )


class TransformationError(PipelineException):
    """Mapeo de columnas invalido: nombres destino duplicados o vacios."""

    def __init__(self, errors: List[str], mapping_name: str = ""):
        self.errors = list(errors)
        label = f" '{mapping_name}'" if mapping_name else ""
        super().__init__(
            message=f"Configuracion de transformacion{label} invalida: {'; '.join(self.errors)}",
            error_code="TRANSFORMATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )


class DeliveryError(PipelineException):
    """Fallo de entrega que no puede expresarse como DeliveryOutcome (p.ej. destino ausente)."""

    def __init__(self, message: str, status: DeliveryStatus = DeliveryStatus.FATAL, status_code: Optional[int] = None):
        self.status = status
        self.http_status = status_code
        super().__init__(
            message=message,
            error_code="DELIVERY_ERROR",
            details={"status": status.value, "http_status": status_code},
        )
