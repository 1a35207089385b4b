"""
Scheduler de tareas basado en APScheduler (BackgroundScheduler).

Cada ScheduledTask activa con cron valido se registra como un job
`task_<id>`. Ademas existe un job de sistema (`data_sync`) que ejecuta la
sincronizacion completa cada N minutos.

El scheduler no conoce el pipeline: recibe un SyncRunner y solo le pide
`run_task(id)` o `run_all()`.
"""
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from odbc_bridge.application.interfaces.sync_runner import SyncRunner
from odbc_bridge.core.config import settings
from odbc_bridge.domain.entities.scheduled_task import ScheduledTask
from odbc_bridge.shared.constants.pipeline_constants import SYSTEM_SYNC_JOB_ID, TaskState
from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils


@dataclass(frozen=True)
class ScheduleResult:
    """Resultado de programar una tarea. Un cron invalido no lanza: ok=False."""

    ok: bool
    scheduled: bool = False
    error: Optional[str] = None
    next_run_at: Optional[datetime] = None


def validate_cron(expression: str) -> Optional[str]:
    """Retorna None si la expresion es valida, o el motivo del rechazo."""
    try:
        CronTrigger.from_crontab((expression or "").strip())
    except ValueError as e:
        return str(e)
    return None


def _next_run(job) -> Optional[datetime]:
    # Los jobs pendientes (scheduler sin iniciar) aun no tienen next_run_time
    return getattr(job, "next_run_time", None) if job is not None else None


class TaskScheduler:
    """
    Programa tareas y mantiene su estado (UNSCHEDULED / SCHEDULED / FIRING).

    Args:
        runner: Implementacion de SyncRunner que ejecuta los disparos.
        scheduler: Scheduler de APScheduler (por defecto BackgroundScheduler).
        max_workers: Threads del pool de disparos.
    """

    def __init__(
        self,
        runner: SyncRunner,
        scheduler: Optional[BaseScheduler] = None,
        *,
        max_workers: int = settings.SCHEDULER_MAX_WORKERS,
    ) -> None:
        self._runner = runner
        self._scheduler = scheduler or BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(max_workers)},
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
        )
        self._states: Dict[int, TaskState] = {}
        self._in_flight = 0
        self._accepting = True
        self._cond = threading.Condition()

    @property
    def scheduler(self) -> BaseScheduler:
        return self._scheduler

    # ------------------------------------------------------------------
    # Tareas
    # ------------------------------------------------------------------

    def schedule(self, task: ScheduledTask) -> ScheduleResult:
        """
        Instala el timer de la tarea.

        - Cron invalido: ok=False con el motivo; la tarea no queda programada.
        - Tarea inactiva: ok=True sin timer.
        """
        if task.id is None:
            return ScheduleResult(ok=False, error="La tarea no tiene id")

        try:
            trigger = CronTrigger.from_crontab(task.cron.strip())
        except ValueError as e:
            logger.error(f"[Scheduler] Cron invalido '{task.cron}' en la tarea '{task.name}': {e}")
            return ScheduleResult(ok=False, error=f"Expresion cron invalida '{task.cron}': {e}")

        if not task.active:
            self.unschedule(task.id)
            logger.info(f"[Scheduler] Tarea '{task.name}' inactiva, no se programa")
            return ScheduleResult(ok=True, scheduled=False)

        job = self._scheduler.add_job(
            self._fire_task,
            trigger=trigger,
            id=task.job_id,
            name=task.name,
            args=[task.id],
            replace_existing=True,
        )
        with self._cond:
            if self._states.get(task.id) != TaskState.FIRING:
                self._states[task.id] = TaskState.SCHEDULED

        next_run_at = _next_run(job)
        logger.info(f"[Scheduler] Tarea '{task.name}' programada con cron '{task.cron}' (job {task.job_id})")
        return ScheduleResult(ok=True, scheduled=True, next_run_at=next_run_at)

    def unschedule(self, task_id: int) -> bool:
        """
        Quita el job de la tarea. Idempotente; un disparo en curso termina
        normalmente. Retorna True si habia un job.
        """
        job_id = f"task_{task_id}"
        removed = self._scheduler.get_job(job_id) is not None
        if removed:
            self._scheduler.remove_job(job_id)
            logger.info(f"[Scheduler] Job {job_id} removido")
        with self._cond:
            self._states.pop(task_id, None)
        return removed

    def reschedule(self, task: ScheduledTask) -> ScheduleResult:
        self.unschedule(task.id)
        return self.schedule(task)

    def state(self, task_id: int) -> TaskState:
        with self._cond:
            return self._states.get(task_id, TaskState.UNSCHEDULED)

    def is_scheduled(self, task_id: int) -> bool:
        return self._scheduler.get_job(f"task_{task_id}") is not None

    # ------------------------------------------------------------------
    # Sincronizacion de sistema
    # ------------------------------------------------------------------

    def schedule_system_sync(self, interval_minutes: int) -> ScheduleResult:
        """Programa (o reprograma) el job `data_sync`. Intervalo <= 0 lo desactiva."""
        if interval_minutes <= 0:
            if self._scheduler.get_job(SYSTEM_SYNC_JOB_ID) is not None:
                self._scheduler.remove_job(SYSTEM_SYNC_JOB_ID)
            logger.info("[Scheduler] Sincronizacion automatica desactivada")
            return ScheduleResult(ok=True, scheduled=False)

        job = self._scheduler.add_job(
            self._fire_system_sync,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=SYSTEM_SYNC_JOB_ID,
            name="Sincronizacion completa",
            replace_existing=True,
        )
        logger.info(f"[Scheduler] Sincronizacion automatica cada {interval_minutes} min")
        return ScheduleResult(ok=True, scheduled=True, next_run_at=_next_run(job))

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def start(self, tasks: Iterable[ScheduledTask] = (), interval_minutes: Optional[int] = None) -> Dict[int, ScheduleResult]:
        """Programa las tareas recibidas, el job de sistema y arranca el scheduler."""
        results = {}
        for task in tasks:
            results[task.id] = self.schedule(task)
        if interval_minutes is not None:
            system = self.schedule_system_sync(interval_minutes)
            if not system.ok:
                logger.error(f"[Scheduler] No se pudo programar la sincronizacion automatica: {system.error}")
        if not self._scheduler.running:
            self._scheduler.start()
        scheduled = sum(1 for r in results.values() if r.scheduled)
        logger.success(f"[Scheduler] Iniciado con {scheduled}/{len(results)} tareas programadas")
        return results

    def shutdown(self, grace_s: float = settings.SHUTDOWN_GRACE_S) -> bool:
        """
        Deja de aceptar disparos y espera hasta `grace_s` a los que estan en
        curso. Retorna True si todos terminaron dentro del plazo.
        """
        with self._cond:
            self._accepting = False
        if self._scheduler.running:
            self._scheduler.pause()

        deadline = time.monotonic() + grace_s
        clean = True
        with self._cond:
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    clean = False
                    logger.warning(f"[Scheduler] {self._in_flight} disparos siguen en curso tras {grace_s:g}s")
                    break
                self._cond.wait(remaining)

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Detenido")
        return clean

    def status(self) -> Dict[str, Any]:
        """Estado por tarea, proximo disparo y job de sistema."""
        with self._cond:
            states = dict(self._states)
            in_flight = self._in_flight

        tasks = []
        for task_id, state in sorted(states.items()):
            job = self._scheduler.get_job(f"task_{task_id}")
            next_run = _next_run(job)
            tasks.append(
                {
                    "task_id": task_id,
                    "job_id": f"task_{task_id}",
                    "state": state.value,
                    "next_run_at": DateTimeUtils.to_iso_string(next_run) if next_run else None,
                }
            )

        system_job = self._scheduler.get_job(SYSTEM_SYNC_JOB_ID)
        system_next = _next_run(system_job)
        return {
            "running": bool(self._scheduler.running),
            "in_flight": in_flight,
            "tasks": tasks,
            "system_sync": {
                "scheduled": system_job is not None,
                "next_run_at": DateTimeUtils.to_iso_string(system_next) if system_next else None,
            },
        }

    # ------------------------------------------------------------------
    # Disparos (threads del pool de APScheduler)
    # ------------------------------------------------------------------

    def _begin(self, task_id: Optional[int] = None) -> bool:
        with self._cond:
            if not self._accepting:
                return False
            if task_id is not None:
                self._states[task_id] = TaskState.FIRING
            self._in_flight += 1
            return True

    def _end(self, task_id: Optional[int] = None) -> None:
        with self._cond:
            self._in_flight -= 1
            # Si se desprogramo durante el disparo el estado ya no es FIRING
            if task_id is not None and self._states.get(task_id) == TaskState.FIRING:
                self._states[task_id] = TaskState.SCHEDULED
            self._cond.notify_all()

    def _fire_task(self, task_id: int) -> None:
        if not self._begin(task_id):
            return
        try:
            logger.info(f"[Scheduler] Disparando tarea {task_id}")
            outcome = self._runner.run_task(task_id)
            if outcome.success:
                logger.success(f"[Scheduler] Tarea {task_id} completada: {outcome.message}")
            else:
                logger.warning(f"[Scheduler] Tarea {task_id} fallo: {outcome.message}")
        except Exception as e:
            logger.exception(f"[Scheduler] Error inesperado en la tarea {task_id}: {e}")
        finally:
            self._end(task_id)

    def _fire_system_sync(self) -> None:
        if not self._begin():
            return
        try:
            logger.info("[Scheduler] Iniciando sincronizacion completa")
            summary = self._runner.run_all()
            logger.info(
                f"[Scheduler] Sincronizacion completa: {summary.succeeded}/{summary.total_tasks} exitosas"
            )
        except Exception as e:
            logger.exception(f"[Scheduler] Error en la sincronizacion completa: {e}")
        finally:
            self._end()
