"""
Entidad de dominio: ScheduledTask (tarea programada).
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from odbc_bridge.shared.constants.pipeline_constants import HttpMethod


@dataclass
class ScheduledTask:
    """
    Asociacion disparada por cron entre una consulta, un mapeo y un destino.
    Los campos last_run_* solo los escribe el pipeline tras cada disparo.
    """

    id: Optional[int] = None
    name: str = ""
    cron: str = ""
    query_id: Optional[int] = None
    mapping_id: Optional[int] = None
    destination_url: str = ""
    http_method: HttpMethod = HttpMethod.POST
    headers: Dict[str, str] = field(default_factory=dict)
    active: bool = True
    max_retries: Optional[int] = None
    wrap_payload: bool = False
    last_run_at: Optional[datetime] = None
    last_run_success: Optional[bool] = None
    last_run_message: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("El nombre de la tarea no puede estar vacio")
        if isinstance(self.http_method, str):
            self.http_method = HttpMethod(self.http_method.upper())

    @property
    def job_id(self) -> str:
        """Identificador del job en el scheduler."""
        return f"task_{self.id}"
