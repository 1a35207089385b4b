"""
Casos de uso de las operaciones que la UI dispara bajo demanda.

Todas retornan OperationResultDTO: las excepciones se convierten en
{success: false, message} y nunca llegan al caller. Cada operacion se
ejecuta en el pool ODBC con un timeout propio.
"""
import asyncio
from typing import Any, Dict, Optional

from loguru import logger

from odbc_bridge.application.dto.pipeline_dto import (
    ConnectionProfileCreateDTO,
    MappingPreviewRequestDTO,
    OperationResultDTO,
)
from odbc_bridge.application.interfaces.config_store import ConfigStore
from odbc_bridge.application.services.sync_service import SyncService
from odbc_bridge.application.services.transformation_engine import TransformationEngine
from odbc_bridge.core.config import Settings, settings as default_settings
from odbc_bridge.domain.entities import ColumnMapping, ConnectionProfile
from odbc_bridge.infrastructure.odbc.connection_resolver import ConnectionResolver
from odbc_bridge.infrastructure.odbc.diagnostics import ConnectionDiagnostics
from odbc_bridge.infrastructure.odbc.odbc_executor import run_odbc, run_odbc_with_timeout
from odbc_bridge.shared.exceptions.base import AppException
from odbc_bridge.shared.exceptions.domain import EntityNotFoundException
from odbc_bridge.shared.exceptions.pipeline import DatabaseConnectionError


def _failure(message: str, data: Any = None) -> OperationResultDTO:
    return OperationResultDTO(success=False, message=message, data=data)


class PipelineUseCases:
    """
    Operaciones de UI sobre el pipeline.

    Args:
        store: Almacen de configuracion.
        resolver: ConnectionResolver compartido con el scheduler.
        engine: Motor de transformacion.
        sync_service: Servicio que ejecuta tareas y consultas.
        diagnostics: Diagnostico paso a paso (por defecto sobre el mismo resolver).
    """

    def __init__(
        self,
        store: ConfigStore,
        resolver: ConnectionResolver,
        engine: TransformationEngine,
        sync_service: SyncService,
        diagnostics: Optional[ConnectionDiagnostics] = None,
        config: Settings = default_settings,
    ):
        self.store = store
        self.resolver = resolver
        self.engine = engine
        self.sync_service = sync_service
        self.diagnostics = diagnostics or ConnectionDiagnostics(resolver)
        self.config = config

    # ------------------------------------------------------------------
    # Conexiones
    # ------------------------------------------------------------------

    async def test_connection(self, dto: ConnectionProfileCreateDTO) -> OperationResultDTO:
        """
        Prueba los parametros de conexion sin guardarlos ni usar el cache.

        Returns:
            OperationResultDTO: data con la estrategia ganadora y la connection
            string enmascarada, o con el tipo de falla y la sugerencia.
        """
        try:
            profile = ConnectionProfile(**dto.model_dump())
        except ValueError as e:
            return _failure(str(e))
        return await self._guard(
            self._probe_profile,
            profile,
            timeout=self.config.UI_TEST_CONNECTION_TIMEOUT_S,
            label="probar la conexion",
        )

    async def test_saved_connection(self, profile_id: int) -> OperationResultDTO:
        profile = self.store.get_connection_profile(profile_id)
        if profile is None:
            return _failure(f"ConnectionProfile con ID {profile_id} no encontrado")
        return await self._guard(
            self._probe_profile,
            profile,
            timeout=self.config.UI_TEST_CONNECTION_TIMEOUT_S,
            label="probar la conexion",
        )

    async def diagnose(self, profile_id: int) -> OperationResultDTO:
        """Diagnostico paso a paso: drivers, servidor, credenciales, base y conexion."""
        profile = self.store.get_connection_profile(profile_id)
        if profile is None:
            return _failure(f"ConnectionProfile con ID {profile_id} no encontrado")

        async def _run() -> OperationResultDTO:
            report = await run_odbc_with_timeout(
                self.diagnostics.diagnose,
                profile,
                timeout_seconds=self.config.UI_TEST_CONNECTION_TIMEOUT_S,
            )
            message = "Diagnostico completado sin errores" if report.success else "El diagnostico encontro problemas"
            return OperationResultDTO(success=report.success, message=message, data=report.to_dict())

        return await self._convert(_run(), self.config.UI_TEST_CONNECTION_TIMEOUT_S, "diagnosticar la conexion")

    # ------------------------------------------------------------------
    # Consultas y mapeos
    # ------------------------------------------------------------------

    async def run_query_now(self, query_id: int, parameters: Optional[Dict[str, Any]] = None) -> OperationResultDTO:
        """Ejecuta una consulta guardada y retorna el resultado en su formato de salida."""
        query = self.store.get_query_definition(query_id)
        if query is None:
            return _failure(f"QueryDefinition con ID {query_id} no encontrado")

        def _run() -> OperationResultDTO:
            result = self.sync_service.fetch(query, parameters)
            return OperationResultDTO(
                success=True,
                message=f"Consulta ejecutada: {len(result)} registros",
                data={
                    "columns": result.columns,
                    "record_count": len(result),
                    "elapsed_ms": round(result.elapsed_ms, 1),
                    "output_format": query.output_format.value,
                    "result": self.engine.format_rows(result.rows, query.output_format),
                },
            )

        return await self._guard(_run, timeout=self.config.UI_RUN_QUERY_TIMEOUT_S, label="ejecutar la consulta")

    async def preview_mapping(self, query_id: int, dto: MappingPreviewRequestDTO) -> OperationResultDTO:
        """Aplica reglas a las primeras filas de la consulta sin persistir el mapeo."""
        query = self.store.get_query_definition(query_id)
        if query is None:
            return _failure(f"QueryDefinition con ID {query_id} no encontrado")
        mapping = ColumnMapping.from_dict({"name": "preview", "query_id": query_id, "rules": dto.rules})
        errors = self.engine.validation_errors(mapping) if dto.rules else []
        if errors:
            return _failure("Configuracion de transformacion invalida", data={"errors": errors})

        def _run() -> OperationResultDTO:
            rows = self.sync_service.fetch(query).rows[: dto.limit]
            transformed = self.engine.transform(rows, mapping if dto.rules else None)
            return OperationResultDTO(
                success=True,
                message=f"Vista previa de {len(transformed)} registros",
                data={"original": rows, "transformed": transformed},
            )

        return await self._guard(_run, timeout=self.config.UI_RUN_QUERY_TIMEOUT_S, label="generar la vista previa")

    # ------------------------------------------------------------------
    # Tareas
    # ------------------------------------------------------------------

    async def execute_task_now(self, task_id: int) -> OperationResultDTO:
        """
        Dispara una tarea fuera de su cron. Si el timeout vence, el disparo
        continua en segundo plano y registra su resultado igualmente.
        """
        if self.store.get_scheduled_task(task_id) is None:
            return _failure(f"ScheduledTask con ID {task_id} no encontrado")

        def _run() -> OperationResultDTO:
            outcome = self.sync_service.run_task(task_id)
            return OperationResultDTO(success=outcome.success, message=outcome.message, data=outcome.to_dict())

        return await self._guard(_run, timeout=self.config.UI_EXECUTE_TASK_TIMEOUT_S, label="ejecutar la tarea")

    async def run_sync_now(self) -> OperationResultDTO:
        """Sincronizacion completa de todas las tareas activas."""

        def _run() -> OperationResultDTO:
            summary = self.sync_service.run_all()
            return OperationResultDTO(
                success=summary.success,
                message=f"{summary.succeeded}/{summary.total_tasks} tareas sincronizadas",
                data={
                    "total_tasks": summary.total_tasks,
                    "succeeded": summary.succeeded,
                    "failed": summary.failed,
                    "outcomes": [o.to_dict() for o in summary.outcomes],
                },
            )

        return await self._guard(_run, timeout=None, label="sincronizar")

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _probe_profile(self, profile: ConnectionProfile) -> OperationResultDTO:
        handle = self.resolver.connect_once(profile)
        try:
            alive = handle.probe()
            info = handle.info()
        finally:
            handle.close()
        if not alive:
            return _failure("La conexion se establecio pero no respondio a la consulta de prueba", data=info)
        return OperationResultDTO(
            success=True,
            message=f"Conexion establecida (estrategia {info['strategy']}, tentativa {info['attempt_index']})",
            data=info,
        )

    async def _guard(self, func, *args, timeout: Optional[float], label: str) -> OperationResultDTO:
        if timeout is None:
            return await self._convert(run_odbc(func, *args), None, label)
        return await self._convert(run_odbc_with_timeout(func, *args, timeout_seconds=timeout), timeout, label)

    @staticmethod
    async def _convert(awaitable, timeout: Optional[float], label: str) -> OperationResultDTO:
        try:
            return await awaitable
        except asyncio.TimeoutError:
            return _failure(f"Tiempo de espera agotado ({timeout:g}s) al {label}")
        except DatabaseConnectionError as e:
            return _failure(
                e.message,
                data={"kind": e.kind.value, "suggestion": e.suggestion, "attempts": e.attempts},
            )
        except EntityNotFoundException as e:
            return _failure(e.message)
        except AppException as e:
            return _failure(e.message, data=e.details or None)
        except Exception as e:
            logger.exception(f"Error inesperado al {label}: {e}")
            return _failure(f"Error inesperado al {label}: {e}")
