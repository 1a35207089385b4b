"""
Dependencias para inyeccion de casos de uso.

Los componentes viven en `app.state.container` (un resolver y un scheduler
por proceso); los tests los reemplazan con `app.dependency_overrides`.
"""
from fastapi import Request

from odbc_bridge.application.services.sync_service import SyncService
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases
from odbc_bridge.infrastructure.scheduling.task_scheduler import TaskScheduler


def get_configuration_use_cases(request: Request) -> ConfigurationUseCases:
    """
    Dependencia para obtener los casos de uso de configuracion (CRUD).

    Args:
        request: Request actual

    Returns:
        ConfigurationUseCases: Instancia compartida
    """
    return request.app.state.container.configuration


def get_pipeline_use_cases(request: Request) -> PipelineUseCases:
    """Dependencia para las operaciones de UI (probar, ejecutar ahora)."""
    return request.app.state.container.pipeline


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.container.sync_service


def get_task_scheduler(request: Request) -> TaskScheduler:
    return request.app.state.container.scheduler
