"""
Entidades de resultado de entrega.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from odbc_bridge.shared.constants.pipeline_constants import DeliveryStatus, HttpMethod
from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils


@dataclass(frozen=True)
class DeliveryPolicy:
    """Politica de reintentos de una entrega."""

    max_retries: int = 3
    timeout_s: float = 60.0
    backoff_base_s: float = 2.0

    def backoff_for(self, attempt: int) -> float:
        """Espera antes del reintento tras el intento `attempt` (1-indexed): base^attempt."""
        return float(self.backoff_base_s ** attempt)


@dataclass(frozen=True)
class DeliveryConfig:
    """
    Configuracion de entrega resuelta una vez por disparo.
    Los valores de la tarea sobreescriben los globales de la API.
    """

    url: str
    method: HttpMethod = HttpMethod.POST
    headers: Tuple[Tuple[str, str], ...] = ()
    api_key: str = field(default="", repr=False)
    policy: DeliveryPolicy = DeliveryPolicy()
    wrap_payload: bool = False

    def header_dict(self) -> Dict[str, str]:
        return dict(self.headers)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Registro inmutable del resultado de un disparo (append-only)."""

    task_id: Optional[int]
    success: bool
    record_count: int = 0
    status: DeliveryStatus = DeliveryStatus.FATAL
    status_code: Optional[int] = None
    error_class: Optional[str] = None
    retry_count: int = 0
    message: str = ""
    response_body: Any = None
    duration_ms: Optional[float] = None
    timestamp: datetime = field(default_factory=DateTimeUtils.now_utc)

    def with_context(self, **changes) -> "DeliveryOutcome":
        """Copia con campos actualizados (task_id, record_count...)."""
        data = asdict(self)
        data.update(changes)
        return DeliveryOutcome(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "success": self.success,
            "record_count": self.record_count,
            "status": self.status.value,
            "status_code": self.status_code,
            "error_class": self.error_class,
            "retry_count": self.retry_count,
            "message": self.message,
            "duration_ms": self.duration_ms,
            "timestamp": DateTimeUtils.to_iso_string(self.timestamp),
        }
