"""
Endpoints de sincronizacion: estado, ajustes globales y ejecucion manual.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from odbc_bridge.api.v1.dependencies.use_case_deps import (
    get_configuration_use_cases,
    get_pipeline_use_cases,
    get_sync_service,
    get_task_scheduler,
)
from odbc_bridge.application.dto.pipeline_dto import (
    OperationResultDTO,
    SyncSettingsDTO,
    SyncSettingsResponseDTO,
)
from odbc_bridge.application.services.sync_service import SyncService
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases
from odbc_bridge.infrastructure.scheduling.task_scheduler import TaskScheduler


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("/status", summary="Estado de la sincronizacion")
def get_sync_status(
    sync_service: SyncService = Depends(get_sync_service),
    scheduler: TaskScheduler = Depends(get_task_scheduler),
) -> Dict[str, Any]:
    """
    Ultima sincronizacion, intervalo, si los datos estan al dia, las ultimas
    transformaciones y el estado del scheduler por tarea.
    """
    status = sync_service.sync_status()
    status["scheduler"] = scheduler.status()
    return status


@router.get("/settings", response_model=SyncSettingsResponseDTO, summary="Ajustes de entrega")
def get_sync_settings(
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> SyncSettingsResponseDTO:
    return use_cases.get_sync_settings()


@router.put("/settings", response_model=SyncSettingsResponseDTO, summary="Actualizar ajustes de entrega")
def update_sync_settings(
    dto: SyncSettingsDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> SyncSettingsResponseDTO:
    """Guarda api_url / api_key / intervalo y reprograma el job de sistema."""
    return use_cases.update_sync_settings(dto)


@router.post("/run", response_model=OperationResultDTO, summary="Sincronizar ahora")
async def run_sync_now(
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    return await use_cases.run_sync_now()
