"""
Endpoints para tareas programadas.
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status

from odbc_bridge.api.v1.dependencies.use_case_deps import (
    get_configuration_use_cases,
    get_pipeline_use_cases,
)
from odbc_bridge.application.dto.pipeline_dto import (
    DeliveryOutcomeDTO,
    OperationResultDTO,
    ScheduledTaskCreateDTO,
    ScheduledTaskResponseDTO,
    ScheduledTaskUpdateDTO,
)
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases


router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get("/", response_model=List[ScheduledTaskResponseDTO], summary="Listar tareas")
def list_tasks(
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[ScheduledTaskResponseDTO]:
    return use_cases.list_tasks()


@router.post(
    "/",
    response_model=ScheduledTaskResponseDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Crear una tarea programada",
)
def create_task(
    dto: ScheduledTaskCreateDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ScheduledTaskResponseDTO:
    """
    Crea la tarea y, si esta activa, la programa en el scheduler.
    Un cron invalido responde 400.
    """
    return use_cases.create_task(dto)


@router.get("/{task_id}", response_model=ScheduledTaskResponseDTO, summary="Obtener una tarea")
def get_task(
    task_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ScheduledTaskResponseDTO:
    return use_cases.get_task(task_id)


@router.put("/{task_id}", response_model=ScheduledTaskResponseDTO, summary="Actualizar una tarea")
def update_task(
    task_id: int,
    dto: ScheduledTaskUpdateDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ScheduledTaskResponseDTO:
    """Actualiza la tarea y la reprograma (desactivarla quita su timer)."""
    return use_cases.update_task(task_id, dto)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Eliminar una tarea")
def delete_task(
    task_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> None:
    use_cases.delete_task(task_id)


@router.post("/{task_id}/execute", response_model=OperationResultDTO, summary="Ejecutar una tarea ahora")
async def execute_task_now(
    task_id: int,
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    return await use_cases.execute_task_now(task_id)


@router.get("/{task_id}/outcomes", response_model=List[DeliveryOutcomeDTO], summary="Historial de disparos")
def list_task_outcomes(
    task_id: int,
    limit: int = Query(50, ge=1, le=500),
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[DeliveryOutcomeDTO]:
    return use_cases.list_outcomes(task_id, limit)
