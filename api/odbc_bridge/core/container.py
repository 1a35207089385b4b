"""
Construccion de los componentes compartidos de la aplicacion.

Un unico resolver (cache de handles) y un unico scheduler por proceso; la API
y el CLI obtienen todo desde aqui.
"""
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from odbc_bridge.application.services.sync_service import SyncService
from odbc_bridge.application.services.transformation_engine import TransformationEngine
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases
from odbc_bridge.core.config import Settings, settings as default_settings
from odbc_bridge.infrastructure.database.session import SessionLocal
from odbc_bridge.infrastructure.external.delivery.delivery_client import DeliveryClient
from odbc_bridge.infrastructure.odbc.connection_resolver import ConnectFn, ConnectionResolver, pyodbc_connect
from odbc_bridge.infrastructure.odbc.connection_strings import strategies_from_names
from odbc_bridge.infrastructure.odbc.query_executor import QueryExecutor
from odbc_bridge.infrastructure.repositories.config_store_repository import SqlAlchemyConfigStore
from odbc_bridge.infrastructure.scheduling.task_scheduler import TaskScheduler


@dataclass
class AppContainer:
    """Componentes vivos del proceso."""

    config: Settings
    store: SqlAlchemyConfigStore
    resolver: ConnectionResolver
    executor: QueryExecutor
    engine: TransformationEngine
    delivery: DeliveryClient
    sync_service: SyncService
    scheduler: TaskScheduler
    configuration: ConfigurationUseCases
    pipeline: PipelineUseCases

    def close(self, grace_s: Optional[float] = None) -> None:
        """Detiene el scheduler (con gracia) y cierra conexiones y sesion HTTP."""
        grace = self.config.SHUTDOWN_GRACE_S if grace_s is None else grace_s
        clean = self.scheduler.shutdown(grace)
        if not clean:
            logger.warning("Algunos disparos no terminaron dentro del periodo de gracia")
        closed = self.resolver.close_all()
        self.resolver.shutdown()
        self.delivery.close()
        logger.info(f"Conexiones ODBC cerradas: {closed}")


def build_container(
    config: Settings = default_settings,
    *,
    session_factory: sessionmaker = SessionLocal,
    connect_fn: ConnectFn = pyodbc_connect,
    delivery: Optional[DeliveryClient] = None,
    audit: bool = False,
) -> AppContainer:
    """
    Crea todos los componentes ya conectados entre si.

    Args:
        config: Settings de la aplicacion.
        session_factory: sessionmaker del almacen local.
        connect_fn: Conector ODBC (inyectable en tests).
        delivery: Cliente HTTP (inyectable en tests).
        audit: Habilita los archivos de auditoria por tarea.
    """
    store = SqlAlchemyConfigStore(session_factory)
    resolver = ConnectionResolver(
        connect_fn,
        strategies=strategies_from_names(config.connection_strategies),
        default_driver=config.DEFAULT_ODBC_DRIVER,
        connect_timeout_s=config.CONNECT_TIMEOUT_S,
        slow_connect_timeout_s=config.SLOW_CONNECT_TIMEOUT_S,
        slow_drivers=config.slow_drivers,
        lock_timeout_s=config.PROFILE_LOCK_TIMEOUT_S,
        max_workers=config.CONNECT_MAX_WORKERS,
    )
    executor = QueryExecutor(config.top_dialect_drivers, config.QUERY_TIMEOUT_S)
    engine = TransformationEngine()
    delivery = delivery or DeliveryClient()
    sync_service = SyncService(store, resolver, executor, engine, delivery, config, audit=audit)
    scheduler = TaskScheduler(sync_service, max_workers=config.SCHEDULER_MAX_WORKERS)
    return AppContainer(
        config=config,
        store=store,
        resolver=resolver,
        executor=executor,
        engine=engine,
        delivery=delivery,
        sync_service=sync_service,
        scheduler=scheduler,
        configuration=ConfigurationUseCases(store, engine, resolver, scheduler, config),
        pipeline=PipelineUseCases(store, resolver, engine, sync_service, config=config),
    )
