"""
Interfaz estrecha que el scheduler usa para disparar sincronizaciones.

El scheduler no importa el servicio concreto: recibe un SyncRunner en su
constructor, lo que evita el acoplamiento ciclico scheduler <-> sync.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Protocol

from odbc_bridge.domain.entities import DeliveryOutcome


@dataclass(frozen=True)
class SyncSummary:
    """Resumen de una sincronizacion completa."""

    total_tasks: int
    succeeded: int
    failed: int
    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0


class SyncRunner(Protocol):
    def run_task(self, task_id: int) -> DeliveryOutcome:
        """Ejecuta un disparo completo; nunca lanza por fallas del pipeline."""
        ...

    def run_all(self) -> SyncSummary:
        """Ejecuta todas las tareas activas."""
        ...
