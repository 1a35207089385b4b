"""
Casos de uso de configuracion: perfiles, consultas, mapeos, tareas y
ajustes globales de sincronizacion.

Mantiene coherentes los componentes en memoria: editar un perfil invalida su
handle cacheado y editar una tarea la reprograma.
"""
from dataclasses import replace
from typing import List, Optional

from loguru import logger

from odbc_bridge.application.dto.pipeline_dto import (
    ColumnMappingResponseDTO,
    ColumnMappingSaveDTO,
    ConnectionProfileCreateDTO,
    ConnectionProfileResponseDTO,
    ConnectionProfileUpdateDTO,
    DeliveryOutcomeDTO,
    LogEntryDTO,
    QueryDefinitionCreateDTO,
    QueryDefinitionResponseDTO,
    QueryDefinitionUpdateDTO,
    ScheduledTaskCreateDTO,
    ScheduledTaskResponseDTO,
    ScheduledTaskUpdateDTO,
    SyncSettingsDTO,
    SyncSettingsResponseDTO,
)
from odbc_bridge.application.services.transformation_engine import TransformationEngine
from odbc_bridge.core.config import Settings, settings as default_settings
from odbc_bridge.domain.entities import ColumnMapping, ConnectionProfile, QueryDefinition, ScheduledTask
from odbc_bridge.infrastructure.odbc.connection_resolver import ConnectionResolver
from odbc_bridge.infrastructure.repositories.config_store_repository import SqlAlchemyConfigStore
from odbc_bridge.infrastructure.scheduling.task_scheduler import TaskScheduler, validate_cron
from odbc_bridge.shared.constants.pipeline_constants import (
    SETTING_API_KEY,
    SETTING_API_URL,
    SETTING_SYNC_INTERVAL,
)
from odbc_bridge.shared.exceptions.domain import EntityNotFoundException, ValidationException
from odbc_bridge.shared.utils.audit_logger import TaskAuditLogger
from odbc_bridge.shared.utils.masking import mask_connection_string, mask_secret


class ConfigurationUseCases:
    """
    CRUD de la configuracion del pipeline.

    Args:
        store: Almacen SQLAlchemy.
        engine: Motor de transformacion (valida mapeos antes de guardar).
        resolver: Resolver cuyo cache se invalida al editar perfiles.
        scheduler: Scheduler a mantener sincronizado (None en CLI/tests).
    """

    def __init__(
        self,
        store: SqlAlchemyConfigStore,
        engine: TransformationEngine,
        resolver: Optional[ConnectionResolver] = None,
        scheduler: Optional[TaskScheduler] = None,
        config: Settings = default_settings,
    ):
        self.store = store
        self.engine = engine
        self.resolver = resolver
        self.scheduler = scheduler
        self.config = config

    # ------------------------------------------------------------------
    # Perfiles de conexion
    # ------------------------------------------------------------------

    def list_connections(self) -> List[ConnectionProfileResponseDTO]:
        return [self._profile_dto(p) for p in self.store.list_connection_profiles()]

    def get_connection(self, profile_id: int) -> ConnectionProfileResponseDTO:
        return self._profile_dto(self._require_profile(profile_id))

    def create_connection(self, dto: ConnectionProfileCreateDTO) -> ConnectionProfileResponseDTO:
        try:
            profile = ConnectionProfile(**dto.model_dump())
        except ValueError as e:
            raise ValidationException(str(e))
        return self._profile_dto(self.store.save_connection_profile(profile))

    def update_connection(self, profile_id: int, dto: ConnectionProfileUpdateDTO) -> ConnectionProfileResponseDTO:
        current = self._require_profile(profile_id)
        changes = {k: v for k, v in dto.model_dump(exclude_unset=True).items() if v is not None}
        try:
            updated = replace(current, **changes)
        except ValueError as e:
            raise ValidationException(str(e))
        saved = self.store.save_connection_profile(updated)
        if self.resolver is not None:
            self.resolver.invalidate(saved.cache_key)
        return self._profile_dto(saved)

    def delete_connection(self, profile_id: int) -> None:
        if not self.store.delete_connection_profile(profile_id):
            raise EntityNotFoundException("ConnectionProfile", profile_id)
        if self.resolver is not None:
            self.resolver.forget(str(profile_id))
        logger.info(f"Perfil de conexion {profile_id} eliminado")

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    def list_queries(self) -> List[QueryDefinitionResponseDTO]:
        return [self._query_dto(q) for q in self.store.list_query_definitions()]

    def get_query(self, query_id: int) -> QueryDefinitionResponseDTO:
        return self._query_dto(self._require_query(query_id))

    def create_query(self, dto: QueryDefinitionCreateDTO) -> QueryDefinitionResponseDTO:
        query = QueryDefinition(**dto.model_dump())
        return self._query_dto(self.store.save_query_definition(query))

    def update_query(self, query_id: int, dto: QueryDefinitionUpdateDTO) -> QueryDefinitionResponseDTO:
        current = self._require_query(query_id)
        updated = replace(current, **dto.model_dump(exclude_unset=True))
        return self._query_dto(self.store.save_query_definition(updated))

    def delete_query(self, query_id: int) -> None:
        if not self.store.delete_query_definition(query_id):
            raise EntityNotFoundException("QueryDefinition", query_id)

    # ------------------------------------------------------------------
    # Mapeos
    # ------------------------------------------------------------------

    def list_mappings(self, query_id: Optional[int] = None) -> List[ColumnMappingResponseDTO]:
        return [self._mapping_dto(m) for m in self.store.list_column_mappings(query_id)]

    def get_mapping(self, mapping_id: int) -> ColumnMappingResponseDTO:
        mapping = self.store.get_column_mapping(mapping_id=mapping_id)
        if mapping is None:
            raise EntityNotFoundException("ColumnMapping", mapping_id)
        return self._mapping_dto(mapping)

    def save_mapping(self, dto: ColumnMappingSaveDTO, mapping_id: Optional[int] = None) -> ColumnMappingResponseDTO:
        """
        Valida y guarda un mapeo.

        Raises:
            TransformationError: Nombres destino vacios o duplicados, o sin columnas.
        """
        mapping = ColumnMapping.from_dict({"id": mapping_id, **dto.model_dump()})
        self.engine.validate_mapping(mapping)
        return self._mapping_dto(self.store.save_column_mapping(mapping))

    def delete_mapping(self, mapping_id: int) -> None:
        if not self.store.delete_column_mapping(mapping_id):
            raise EntityNotFoundException("ColumnMapping", mapping_id)

    # ------------------------------------------------------------------
    # Tareas
    # ------------------------------------------------------------------

    def list_tasks(self) -> List[ScheduledTaskResponseDTO]:
        return [self._task_dto(t) for t in self.store.list_scheduled_tasks()]

    def get_task(self, task_id: int) -> ScheduledTaskResponseDTO:
        return self._task_dto(self._require_task(task_id))

    def create_task(self, dto: ScheduledTaskCreateDTO) -> ScheduledTaskResponseDTO:
        self._check_cron(dto.cron)
        saved = self.store.save_scheduled_task(ScheduledTask(**dto.model_dump()))
        self._sync_scheduler(saved)
        return self._task_dto(saved)

    def update_task(self, task_id: int, dto: ScheduledTaskUpdateDTO) -> ScheduledTaskResponseDTO:
        current = self._require_task(task_id)
        changes = dto.model_dump(exclude_unset=True)
        if "cron" in changes:
            changes["cron"] = changes["cron"].strip()
            self._check_cron(changes["cron"])
        saved = self.store.save_scheduled_task(replace(current, **changes))
        self._sync_scheduler(saved)
        return self._task_dto(saved)

    def delete_task(self, task_id: int) -> None:
        if self.scheduler is not None:
            self.scheduler.unschedule(task_id)
        if not self.store.delete_scheduled_task(task_id):
            raise EntityNotFoundException("ScheduledTask", task_id)
        TaskAuditLogger.release_task_logger(task_id)
        logger.info(f"Tarea {task_id} eliminada")

    def list_outcomes(self, task_id: Optional[int] = None, limit: int = 50) -> List[DeliveryOutcomeDTO]:
        return [DeliveryOutcomeDTO(**o.to_dict()) for o in self.store.list_outcomes(task_id, limit)]

    # ------------------------------------------------------------------
    # Ajustes globales y logs
    # ------------------------------------------------------------------

    def get_sync_settings(self) -> SyncSettingsResponseDTO:
        return SyncSettingsResponseDTO(
            api_url=self.store.get_setting(SETTING_API_URL) or self.config.API_URL,
            api_key=mask_secret(self.store.get_setting(SETTING_API_KEY) or self.config.API_KEY),
            sync_interval_minutes=int(
                self.store.get_setting(SETTING_SYNC_INTERVAL, self.config.SYNC_INTERVAL_MINUTES)
            ),
        )

    def update_sync_settings(self, dto: SyncSettingsDTO) -> SyncSettingsResponseDTO:
        """Guarda los ajustes; un nuevo intervalo reprograma el job de sistema."""
        if dto.api_url is not None:
            self.store.set_setting(SETTING_API_URL, dto.api_url.strip(), "URL global de la API de destino")
        if dto.api_key is not None:
            self.store.set_setting(SETTING_API_KEY, dto.api_key.strip(), "API key global (Bearer)")
        if dto.sync_interval_minutes is not None:
            self.store.set_setting(
                SETTING_SYNC_INTERVAL, dto.sync_interval_minutes, "Intervalo de sincronizacion automatica"
            )
            if self.scheduler is not None:
                result = self.scheduler.schedule_system_sync(dto.sync_interval_minutes)
                if not result.ok:
                    raise ValidationException(result.error or "Intervalo invalido", field="sync_interval_minutes")
        return self.get_sync_settings()

    def list_logs(self, level: Optional[str] = None, limit: int = 100) -> List[LogEntryDTO]:
        return [LogEntryDTO(**entry) for entry in self.store.list_logs(level, limit)]

    def clear_logs(self) -> int:
        return self.store.clear_logs()

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _require_profile(self, profile_id: int) -> ConnectionProfile:
        profile = self.store.get_connection_profile(profile_id)
        if profile is None:
            raise EntityNotFoundException("ConnectionProfile", profile_id)
        return profile

    def _require_query(self, query_id: int) -> QueryDefinition:
        query = self.store.get_query_definition(query_id)
        if query is None:
            raise EntityNotFoundException("QueryDefinition", query_id)
        return query

    def _require_task(self, task_id: int) -> ScheduledTask:
        task = self.store.get_scheduled_task(task_id)
        if task is None:
            raise EntityNotFoundException("ScheduledTask", task_id)
        return task

    @staticmethod
    def _check_cron(expression: str) -> None:
        error = validate_cron(expression)
        if error:
            raise ValidationException(f"Expresion cron invalida '{expression}': {error}", field="cron")

    def _sync_scheduler(self, task: ScheduledTask) -> None:
        if self.scheduler is None:
            return
        result = self.scheduler.reschedule(task)
        if not result.ok:
            logger.warning(f"No fue posible programar la tarea '{task.name}': {result.error}")

    def _task_dto(self, task: ScheduledTask) -> ScheduledTaskResponseDTO:
        state = self.scheduler.state(task.id).value if self.scheduler is not None else "unscheduled"
        return ScheduledTaskResponseDTO(
            id=task.id,
            name=task.name,
            cron=task.cron,
            query_id=task.query_id,
            mapping_id=task.mapping_id,
            destination_url=task.destination_url,
            http_method=task.http_method,
            headers=task.headers,
            active=task.active,
            max_retries=task.max_retries,
            wrap_payload=task.wrap_payload,
            state=state,
            last_run_at=task.last_run_at,
            last_run_success=task.last_run_success,
            last_run_message=task.last_run_message,
        )

    @staticmethod
    def _profile_dto(profile: ConnectionProfile) -> ConnectionProfileResponseDTO:
        return ConnectionProfileResponseDTO(
            id=profile.id,
            name=profile.name,
            driver=profile.driver,
            host=profile.host,
            port=profile.port,
            database=profile.database,
            username=profile.username,
            has_password=bool(profile.password),
            extra_params={k: str(v) for k, v in profile.extra_params.items()},
            connection_string=mask_connection_string(profile.connection_string) if profile.connection_string else None,
            dsn=profile.dsn,
        )

    @staticmethod
    def _query_dto(query: QueryDefinition) -> QueryDefinitionResponseDTO:
        return QueryDefinitionResponseDTO(
            id=query.id,
            name=query.name,
            sql=query.sql,
            connection_id=query.connection_id,
            output_format=query.output_format,
            transform_hint=query.transform_hint,
            parameters=query.parameters,
            active=query.active,
        )

    @staticmethod
    def _mapping_dto(mapping: ColumnMapping) -> ColumnMappingResponseDTO:
        return ColumnMappingResponseDTO(
            id=mapping.id,
            name=mapping.name,
            query_id=mapping.query_id,
            rules=mapping.rules_to_dict(),
        )
