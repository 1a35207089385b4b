"""
Servicio de sincronizacion: ejecuta el pipeline completo de una tarea.

    resolver -> executor -> transformacion -> formato -> entrega -> registro

Implementa SyncRunner, por lo que el scheduler lo invoca sin conocerlo.
Cualquier falla de una etapa se convierte en un DeliveryOutcome fallido; el
servicio nunca lanza hacia el scheduler.
"""
import threading
import time
from collections import deque
from datetime import timedelta, timezone
from typing import Any, Deque, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from odbc_bridge.application.interfaces.config_store import ConfigStore
from odbc_bridge.application.interfaces.sync_runner import SyncSummary
from odbc_bridge.application.services.transformation_engine import TransformationEngine
from odbc_bridge.core.config import Settings, settings as default_settings
from odbc_bridge.domain.entities import (
    ColumnMapping,
    DeliveryConfig,
    DeliveryOutcome,
    DeliveryPolicy,
    QueryDefinition,
    RowSet,
    ScheduledTask,
)
from odbc_bridge.infrastructure.external.delivery.delivery_client import DeliveryClient
from odbc_bridge.infrastructure.odbc.connection_resolver import ConnectionResolver
from odbc_bridge.infrastructure.odbc.query_executor import QueryExecutor
from odbc_bridge.shared.constants.pipeline_constants import (
    SETTING_API_KEY,
    SETTING_API_URL,
    SETTING_LAST_SYNC,
    SETTING_SYNC_INTERVAL,
    DeliveryStatus,
    LogLevel,
    QueryErrorKind,
)
from odbc_bridge.shared.exceptions.base import AppException
from odbc_bridge.shared.exceptions.domain import EntityNotFoundException
from odbc_bridge.shared.exceptions.pipeline import DeliveryError, QueryExecutionError
from odbc_bridge.shared.utils.audit_logger import TaskAuditLogger
from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils


RECENT_TRANSFORMATIONS_LIMIT = 5


class SyncService:
    """
    Orquesta los disparos de tareas programadas.

    Args:
        store: ConfigStore con perfiles, consultas, mapeos y tareas.
        resolver: ConnectionResolver compartido (cache de handles).
        executor: QueryExecutor.
        engine: TransformationEngine.
        delivery: DeliveryClient.
        config: Settings con los valores globales de entrega.
        audit: Si True escribe el archivo de auditoria de cada tarea.
    """

    def __init__(
        self,
        store: ConfigStore,
        resolver: ConnectionResolver,
        executor: QueryExecutor,
        engine: TransformationEngine,
        delivery: DeliveryClient,
        config: Settings = default_settings,
        audit: bool = False,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._executor = executor
        self._engine = engine
        self._delivery = delivery
        self._config = config
        self._audit = audit
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=RECENT_TRANSFORMATIONS_LIMIT)
        self._recent_lock = threading.Lock()

    # ------------------------------------------------------------------
    # SyncRunner
    # ------------------------------------------------------------------

    def run_task(self, task_id: int) -> DeliveryOutcome:
        """Ejecuta un disparo completo y registra su resultado."""
        started = time.monotonic()
        try:
            task = self._store.get_scheduled_task(task_id)
        except SQLAlchemyError as e:
            logger.error(f"[Sync] No fue posible leer la tarea {task_id}: {e}")
            outcome = self._failed(task_id, "STORE_ERROR", f"Error al leer la tarea {task_id}: {e}", started)
            self._record(None, outcome)
            return outcome
        if task is None:
            outcome = self._failed(task_id, "NOT_FOUND", f"Tarea {task_id} no encontrada", started)
            self._record(None, outcome)
            return outcome

        task_log = self._task_logger(task)
        task_log.info(f"Inicio del disparo de '{task.name}'")
        try:
            destination = self.resolve_delivery_config(task)
            payload, record_count = self._extract(task, task_log)
            if record_count == 0:
                outcome = DeliveryOutcome(
                    task_id=task.id,
                    success=True,
                    record_count=0,
                    status=DeliveryStatus.SUCCESS,
                    message="La consulta no retorno registros; entrega omitida",
                    duration_ms=self._elapsed_ms(started),
                )
            else:
                outcome = self._delivery.deliver(payload, destination, source=task.name).with_context(
                    task_id=task.id,
                    record_count=record_count,
                    duration_ms=self._elapsed_ms(started),
                )
        except AppException as e:
            task_log.error(f"Etapa fallida ({e.error_code}): {e.message}")
            outcome = self._failed(task.id, e.error_code, e.message, started)
        except Exception as e:
            logger.exception(f"[Sync] Error inesperado en la tarea '{task.name}': {e}")
            outcome = self._failed(task.id, type(e).__name__, str(e), started)

        self._record(task, outcome)
        return outcome

    def run_all(self) -> SyncSummary:
        """Ejecuta secuencialmente todas las tareas activas."""
        tasks = self._store.get_active_scheduled_tasks()
        if not tasks:
            logger.info("[Sync] No hay tareas activas para sincronizar")

        outcomes: List[DeliveryOutcome] = [self.run_task(task.id) for task in tasks]
        succeeded = sum(1 for o in outcomes if o.success)
        summary = SyncSummary(
            total_tasks=len(tasks),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            outcomes=outcomes,
        )

        self._store.set_setting(
            SETTING_LAST_SYNC,
            DateTimeUtils.to_iso_string(DateTimeUtils.now_utc()),
            description="Fecha de la ultima sincronizacion completa",
        )
        level = LogLevel.INFO if summary.success else LogLevel.WARNING
        self._store.append_log(
            level.value,
            f"Sincronizacion completa: {summary.succeeded}/{summary.total_tasks} tareas exitosas",
        )
        return summary

    # ------------------------------------------------------------------
    # Consultas auxiliares
    # ------------------------------------------------------------------

    def resolve_delivery_config(self, task: ScheduledTask) -> DeliveryConfig:
        """
        Combina la tarea con la configuracion global de la API.
        Los valores de la tarea tienen prioridad.

        Raises:
            DeliveryError: Si no hay URL de destino.
        """
        url = (task.destination_url or "").strip()
        if not url:
            url = (self._store.get_setting(SETTING_API_URL) or self._config.API_URL or "").strip()
        if not url:
            raise DeliveryError(f"La tarea '{task.name}' no tiene URL de destino y no hay api_url global")

        api_key = self._store.get_setting(SETTING_API_KEY) or self._config.API_KEY or ""
        max_retries = task.max_retries if task.max_retries is not None else self._config.DELIVERY_MAX_RETRIES
        return DeliveryConfig(
            url=url,
            method=task.http_method,
            headers=tuple(task.headers.items()),
            api_key=api_key,
            policy=DeliveryPolicy(
                max_retries=max_retries,
                timeout_s=self._config.DELIVERY_TIMEOUT_S,
                backoff_base_s=self._config.DELIVERY_BACKOFF_BASE_S,
            ),
            wrap_payload=task.wrap_payload,
        )

    def sync_status(self) -> Dict[str, Any]:
        """Ultima sincronizacion, intervalo y si los datos estan al dia."""
        interval = int(self._store.get_setting(SETTING_SYNC_INTERVAL, self._config.SYNC_INTERVAL_MINUTES))
        raw_last = self._store.get_setting(SETTING_LAST_SYNC)
        last_sync = DateTimeUtils.from_iso_string(raw_last) if raw_last else None
        if last_sync is not None and last_sync.tzinfo is None:
            last_sync = last_sync.replace(tzinfo=timezone.utc)
        next_due = last_sync + timedelta(minutes=interval) if last_sync else None
        return {
            "last_sync_at": DateTimeUtils.to_iso_string(last_sync) if last_sync else None,
            "interval_minutes": interval,
            "up_to_date": bool(next_due and DateTimeUtils.now_utc() < next_due),
            "next_sync_due": DateTimeUtils.to_iso_string(next_due) if next_due else None,
            "recent_transformations": self.recent_transformations(),
        }

    def recent_transformations(self) -> List[Dict[str, Any]]:
        with self._recent_lock:
            return list(self._recent)

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def fetch(self, query: QueryDefinition, parameters: Optional[Dict[str, Any]] = None) -> RowSet:
        """
        Resuelve la conexion de la consulta y la ejecuta.
        Un error de conexion perdida invalida el handle cacheado del perfil.
        """
        profile = self._store.get_connection_profile(query.connection_id)
        if profile is None:
            raise EntityNotFoundException("ConnectionProfile", query.connection_id)

        handle = self._resolver.resolve(profile)
        params = dict(query.parameters)
        params.update(parameters or {})
        try:
            return self._executor.execute(handle, query.sql, params)
        except QueryExecutionError as e:
            if e.kind == QueryErrorKind.CONNECTION_LOST:
                self._resolver.invalidate(profile.cache_key)
            raise

    def _extract(self, task: ScheduledTask, task_log) -> tuple:
        query = self._store.get_query_definition(task.query_id)
        if query is None:
            raise EntityNotFoundException("QueryDefinition", task.query_id)
        mapping = self._mapping_for(task, query)

        result = self.fetch(query)
        task_log.info(f"Consulta '{query.name}': {len(result)} registros")

        rows = self._engine.transform(result.rows, mapping)
        self._remember(task, mapping, len(result), rows)
        return self._engine.format_rows(rows, query.output_format), len(rows)

    def _mapping_for(self, task: ScheduledTask, query: QueryDefinition) -> Optional[ColumnMapping]:
        if task.mapping_id is not None:
            mapping = self._store.get_column_mapping(mapping_id=task.mapping_id)
            if mapping is None:
                raise EntityNotFoundException("ColumnMapping", task.mapping_id)
            return mapping
        return self._store.get_column_mapping(query_id=query.id)

    def _remember(self, task: ScheduledTask, mapping: Optional[ColumnMapping], input_count: int, rows) -> None:
        entry = {
            "task_id": task.id,
            "task_name": task.name,
            "mapping": mapping.name if mapping else None,
            "input_records": input_count,
            "output_records": len(rows),
            "columns": list(rows[0].keys()) if rows else [],
            "timestamp": DateTimeUtils.to_iso_string(DateTimeUtils.now_utc()),
        }
        with self._recent_lock:
            self._recent.appendleft(entry)

    def _record(self, task: Optional[ScheduledTask], outcome: DeliveryOutcome) -> None:
        level = LogLevel.INFO if outcome.success else LogLevel.ERROR
        name = task.name if task else f"#{outcome.task_id}"
        try:
            if task is not None:
                self._store.record_last_run(task.id, outcome.timestamp, outcome)
            self._store.append_outcome(outcome)
            self._store.append_log(
                level.value,
                f"Tarea '{name}': {outcome.message}",
                context={
                    "task_id": outcome.task_id,
                    "record_count": outcome.record_count,
                    "status": outcome.status.value,
                    "error_class": outcome.error_class,
                    "retry_count": outcome.retry_count,
                },
            )
        except SQLAlchemyError as e:
            logger.error(f"[Sync] No fue posible registrar el resultado de '{name}': {e}")

        if self._audit and outcome.task_id is not None:
            TaskAuditLogger.log_outcome(outcome.task_id, outcome.to_dict())

    def _task_logger(self, task: ScheduledTask):
        if self._audit:
            return TaskAuditLogger.get_task_logger(task.id, task.name)
        return logger.bind(task_id=task.id)

    def _failed(self, task_id: Optional[int], error_class: str, message: str, started: float) -> DeliveryOutcome:
        return DeliveryOutcome(
            task_id=task_id,
            success=False,
            record_count=0,
            status=DeliveryStatus.FATAL,
            error_class=error_class,
            message=message,
            duration_ms=self._elapsed_ms(started),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.monotonic() - started) * 1000, 1)
