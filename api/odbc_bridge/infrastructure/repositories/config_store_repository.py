"""
Almacen de configuracion sobre SQLAlchemy.

Implementa el protocolo ConfigStore que consume el pipeline y el CRUD que
usa la API. Cada operacion abre su propia sesion transaccional: el store se
comparte entre threads del scheduler y de la API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from odbc_bridge.domain.entities import (
    ColumnMapping,
    ConnectionProfile,
    DeliveryOutcome,
    QueryDefinition,
    ScheduledTask,
)
from odbc_bridge.infrastructure.database.models import (
    ColumnMappingModel,
    ConnectionProfileModel,
    DeliveryOutcomeModel,
    LogEntryModel,
    QueryDefinitionModel,
    ScheduledTaskModel,
    SystemSettingsModel,
)
from odbc_bridge.infrastructure.database.session import SessionLocal, session_scope
from odbc_bridge.shared.exceptions.domain import EntityNotFoundException


def _to_profile(m: ConnectionProfileModel) -> ConnectionProfile:
    return ConnectionProfile(
        id=m.id,
        name=m.name,
        driver=m.driver or "",
        host=m.host or "",
        port=m.port,
        database=m.database or "",
        username=m.username or "",
        password=m.password or "",
        extra_params=dict(m.extra_params or {}),
        connection_string=m.connection_string,
        dsn=m.dsn,
    )


def _to_query(m: QueryDefinitionModel) -> QueryDefinition:
    return QueryDefinition(
        id=m.id,
        name=m.name,
        sql=m.sql,
        connection_id=m.connection_id,
        output_format=m.output_format,
        transform_hint=m.transform_hint,
        parameters=dict(m.parameters or {}),
        active=bool(m.active),
    )


def _to_mapping(m: ColumnMappingModel) -> ColumnMapping:
    return ColumnMapping.from_dict(
        {"id": m.id, "name": m.name, "query_id": m.query_id, "rules": m.rules or {}}
    )


def _to_task(m: ScheduledTaskModel) -> ScheduledTask:
    return ScheduledTask(
        id=m.id,
        name=m.name,
        cron=m.cron,
        query_id=m.query_id,
        mapping_id=m.mapping_id,
        destination_url=m.destination_url or "",
        http_method=m.http_method,
        headers=dict(m.headers or {}),
        active=bool(m.active),
        max_retries=m.max_retries,
        wrap_payload=bool(m.wrap_payload),
        last_run_at=m.last_run_at,
        last_run_success=m.last_run_success,
        last_run_message=m.last_run_message,
    )


def _to_outcome(m: DeliveryOutcomeModel) -> DeliveryOutcome:
    return DeliveryOutcome(
        task_id=m.task_id,
        success=bool(m.success),
        record_count=m.record_count or 0,
        status=m.status,
        status_code=m.status_code,
        error_class=m.error_class,
        retry_count=m.retry_count or 0,
        message=m.message or "",
        duration_ms=m.duration_ms,
        timestamp=m.timestamp,
    )


class SqlAlchemyConfigStore:
    """
    Gestiona las tablas del almacen local.

    Args:
        session_factory: sessionmaker ligado al engine (por defecto el de la app).
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    # ------------------------------------------------------------------
    # Perfiles de conexion
    # ------------------------------------------------------------------

    def get_connection_profile(self, profile_id: int) -> Optional[ConnectionProfile]:
        with self._scope() as db:
            model = db.get(ConnectionProfileModel, profile_id)
            return _to_profile(model) if model else None

    def list_connection_profiles(self) -> List[ConnectionProfile]:
        with self._scope() as db:
            rows = db.execute(select(ConnectionProfileModel).order_by(ConnectionProfileModel.id)).scalars().all()
            return [_to_profile(r) for r in rows]

    def save_connection_profile(self, profile: ConnectionProfile) -> ConnectionProfile:
        """Crea (id None) o actualiza un perfil."""
        with self._scope() as db:
            model = self._get_or_new(db, ConnectionProfileModel, profile.id, "ConnectionProfile")
            model.name = profile.name
            model.driver = profile.driver
            model.host = profile.host
            model.port = profile.port
            model.database = profile.database
            model.username = profile.username
            model.password = profile.password
            model.extra_params = dict(profile.extra_params)
            model.connection_string = profile.connection_string
            model.dsn = profile.dsn
            db.flush()
            logger.info(f"Perfil de conexion '{model.name}' guardado (id={model.id})")
            return _to_profile(model)

    def delete_connection_profile(self, profile_id: int) -> bool:
        return self._delete(ConnectionProfileModel, profile_id)

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    def get_query_definition(self, query_id: int) -> Optional[QueryDefinition]:
        with self._scope() as db:
            model = db.get(QueryDefinitionModel, query_id)
            return _to_query(model) if model else None

    def list_query_definitions(self) -> List[QueryDefinition]:
        with self._scope() as db:
            rows = db.execute(select(QueryDefinitionModel).order_by(QueryDefinitionModel.id)).scalars().all()
            return [_to_query(r) for r in rows]

    def save_query_definition(self, query: QueryDefinition) -> QueryDefinition:
        with self._scope() as db:
            if db.get(ConnectionProfileModel, query.connection_id) is None:
                raise EntityNotFoundException("ConnectionProfile", query.connection_id)
            model = self._get_or_new(db, QueryDefinitionModel, query.id, "QueryDefinition")
            model.name = query.name
            model.sql = query.sql
            model.connection_id = query.connection_id
            model.output_format = query.output_format
            model.transform_hint = query.transform_hint
            model.parameters = dict(query.parameters)
            model.active = query.active
            db.flush()
            return _to_query(model)

    def delete_query_definition(self, query_id: int) -> bool:
        return self._delete(QueryDefinitionModel, query_id)

    # ------------------------------------------------------------------
    # Mapeos de columnas
    # ------------------------------------------------------------------

    def get_column_mapping(
        self, *, mapping_id: Optional[int] = None, query_id: Optional[int] = None
    ) -> Optional[ColumnMapping]:
        with self._scope() as db:
            if mapping_id is not None:
                model = db.get(ColumnMappingModel, mapping_id)
            elif query_id is not None:
                model = db.execute(
                    select(ColumnMappingModel)
                    .where(ColumnMappingModel.query_id == query_id)
                    .order_by(ColumnMappingModel.id.desc())
                    .limit(1)
                ).scalar_one_or_none()
            else:
                return None
            return _to_mapping(model) if model else None

    def list_column_mappings(self, query_id: Optional[int] = None) -> List[ColumnMapping]:
        with self._scope() as db:
            stmt = select(ColumnMappingModel).order_by(ColumnMappingModel.id)
            if query_id is not None:
                stmt = stmt.where(ColumnMappingModel.query_id == query_id)
            return [_to_mapping(r) for r in db.execute(stmt).scalars().all()]

    def save_column_mapping(self, mapping: ColumnMapping) -> ColumnMapping:
        """Persiste un mapeo ya validado."""
        with self._scope() as db:
            if db.get(QueryDefinitionModel, mapping.query_id) is None:
                raise EntityNotFoundException("QueryDefinition", mapping.query_id)
            model = self._get_or_new(db, ColumnMappingModel, mapping.id, "ColumnMapping")
            model.name = mapping.name
            model.query_id = mapping.query_id
            model.rules = mapping.rules_to_dict()
            db.flush()
            return _to_mapping(model)

    def delete_column_mapping(self, mapping_id: int) -> bool:
        return self._delete(ColumnMappingModel, mapping_id)

    # ------------------------------------------------------------------
    # Tareas programadas
    # ------------------------------------------------------------------

    def get_scheduled_task(self, task_id: int) -> Optional[ScheduledTask]:
        with self._scope() as db:
            model = db.get(ScheduledTaskModel, task_id)
            return _to_task(model) if model else None

    def list_scheduled_tasks(self) -> List[ScheduledTask]:
        with self._scope() as db:
            rows = db.execute(select(ScheduledTaskModel).order_by(ScheduledTaskModel.id)).scalars().all()
            return [_to_task(r) for r in rows]

    def get_active_scheduled_tasks(self) -> List[ScheduledTask]:
        with self._scope() as db:
            rows = db.execute(
                select(ScheduledTaskModel)
                .where(ScheduledTaskModel.active.is_(True))
                .order_by(ScheduledTaskModel.id)
            ).scalars().all()
            return [_to_task(r) for r in rows]

    def save_scheduled_task(self, task: ScheduledTask) -> ScheduledTask:
        """Crea o actualiza la definicion; nunca toca los campos last_run_*."""
        with self._scope() as db:
            if db.get(QueryDefinitionModel, task.query_id) is None:
                raise EntityNotFoundException("QueryDefinition", task.query_id)
            model = self._get_or_new(db, ScheduledTaskModel, task.id, "ScheduledTask")
            model.name = task.name
            model.cron = task.cron
            model.query_id = task.query_id
            model.mapping_id = task.mapping_id
            model.destination_url = task.destination_url
            model.http_method = task.http_method
            model.headers = dict(task.headers)
            model.active = task.active
            model.max_retries = task.max_retries
            model.wrap_payload = task.wrap_payload
            db.flush()
            return _to_task(model)

    def delete_scheduled_task(self, task_id: int) -> bool:
        return self._delete(ScheduledTaskModel, task_id)

    def record_last_run(self, task_id: int, timestamp: datetime, outcome: DeliveryOutcome) -> None:
        with self._scope() as db:
            model = db.get(ScheduledTaskModel, task_id)
            if model is None:
                # La tarea pudo eliminarse durante el disparo; el outcome igual se registra
                logger.warning(f"Tarea {task_id} no existe al registrar la ultima ejecucion")
                return
            model.last_run_at = timestamp
            model.last_run_success = outcome.success
            model.last_run_message = outcome.message

    # ------------------------------------------------------------------
    # Resultados y logs
    # ------------------------------------------------------------------

    def append_outcome(self, outcome: DeliveryOutcome) -> None:
        with self._scope() as db:
            db.add(
                DeliveryOutcomeModel(
                    task_id=outcome.task_id,
                    timestamp=outcome.timestamp,
                    record_count=outcome.record_count,
                    success=outcome.success,
                    status=outcome.status,
                    status_code=outcome.status_code,
                    error_class=outcome.error_class,
                    retry_count=outcome.retry_count,
                    message=outcome.message,
                    duration_ms=outcome.duration_ms,
                )
            )

    def list_outcomes(self, task_id: Optional[int] = None, limit: int = 50) -> List[DeliveryOutcome]:
        with self._scope() as db:
            stmt = select(DeliveryOutcomeModel).order_by(DeliveryOutcomeModel.id.desc()).limit(limit)
            if task_id is not None:
                stmt = stmt.where(DeliveryOutcomeModel.task_id == task_id)
            return [_to_outcome(r) for r in db.execute(stmt).scalars().all()]

    def append_log(self, level: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        with self._scope() as db:
            db.add(LogEntryModel(level=level, message=message, context=context))

    def list_logs(self, level: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        with self._scope() as db:
            stmt = select(LogEntryModel).order_by(LogEntryModel.id.desc()).limit(limit)
            if level:
                stmt = stmt.where(LogEntryModel.level == level)
            return [
                {
                    "id": r.id,
                    "level": r.level,
                    "message": r.message,
                    "context": r.context,
                    "created_at": r.created_at,
                }
                for r in db.execute(stmt).scalars().all()
            ]

    def clear_logs(self) -> int:
        with self._scope() as db:
            result = db.execute(delete(LogEntryModel))
            return result.rowcount or 0

    # ------------------------------------------------------------------
    # Configuraciones del sistema
    # ------------------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._scope() as db:
            setting = db.get(SystemSettingsModel, key)
            return setting.value if setting is not None and setting.value is not None else default

    def get_all_settings(self) -> Dict[str, Any]:
        with self._scope() as db:
            rows = db.execute(select(SystemSettingsModel)).scalars().all()
            return {r.key: r.value for r in rows}

    def set_setting(self, key: str, value: Any, description: Optional[str] = None) -> None:
        with self._scope() as db:
            existing = db.get(SystemSettingsModel, key)
            if existing:
                existing.value = value
                if description:
                    existing.description = description
            else:
                db.add(SystemSettingsModel(key=key, value=value, description=description))
        logger.debug(f"Configuracion '{key}' actualizada")

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    @staticmethod
    def _get_or_new(db, model_cls, entity_id, entity_name: str):
        if entity_id is None:
            model = model_cls()
            db.add(model)
            return model
        model = db.get(model_cls, entity_id)
        if model is None:
            raise EntityNotFoundException(entity_name, entity_id)
        return model

    def _delete(self, model_cls, entity_id: int) -> bool:
        with self._scope() as db:
            model = db.get(model_cls, entity_id)
            if model is None:
                return False
            db.delete(model)
            return True
