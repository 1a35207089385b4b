"""
Interfaz del almacen de configuracion que consume el pipeline.

El pipeline solo lee perfiles, consultas, mapeos y tareas; escribe
unicamente los campos last_run_* de las tareas, los resultados de disparo
y entradas de log.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from odbc_bridge.domain.entities import (
    ColumnMapping,
    ConnectionProfile,
    DeliveryOutcome,
    QueryDefinition,
    ScheduledTask,
)


class ConfigStore(Protocol):
    """
    Implementaciones:
    - SqlAlchemyConfigStore (SQLite local).
    - Fakes en memoria para tests.
    """

    def get_connection_profile(self, profile_id: int) -> Optional[ConnectionProfile]:
        ...

    def get_query_definition(self, query_id: int) -> Optional[QueryDefinition]:
        ...

    def get_column_mapping(
        self, *, mapping_id: Optional[int] = None, query_id: Optional[int] = None
    ) -> Optional[ColumnMapping]:
        """Por id de mapeo o, si no se indica, el mapeo mas reciente de la consulta."""
        ...

    def get_scheduled_task(self, task_id: int) -> Optional[ScheduledTask]:
        ...

    def get_active_scheduled_tasks(self) -> List[ScheduledTask]:
        ...

    def record_last_run(self, task_id: int, timestamp: datetime, outcome: DeliveryOutcome) -> None:
        ...

    def append_outcome(self, outcome: DeliveryOutcome) -> None:
        ...

    def append_log(self, level: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        ...

    def get_setting(self, key: str, default: Any = None) -> Any:
        ...

    def set_setting(self, key: str, value: Any, description: Optional[str] = None) -> None:
        ...
