"""
Endpoints para consultas SQL.
"""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status

from odbc_bridge.api.v1.dependencies.use_case_deps import (
    get_configuration_use_cases,
    get_pipeline_use_cases,
)
from odbc_bridge.application.dto.pipeline_dto import (
    MappingPreviewRequestDTO,
    OperationResultDTO,
    QueryDefinitionCreateDTO,
    QueryDefinitionResponseDTO,
    QueryDefinitionUpdateDTO,
    RunQueryRequestDTO,
)
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases


router = APIRouter(prefix="/queries", tags=["Queries"])


@router.get("/", response_model=List[QueryDefinitionResponseDTO], summary="Listar consultas")
def list_queries(
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[QueryDefinitionResponseDTO]:
    return use_cases.list_queries()


@router.post(
    "/",
    response_model=QueryDefinitionResponseDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Crear una consulta",
)
def create_query(
    dto: QueryDefinitionCreateDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> QueryDefinitionResponseDTO:
    return use_cases.create_query(dto)


@router.get("/{query_id}", response_model=QueryDefinitionResponseDTO, summary="Obtener una consulta")
def get_query(
    query_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> QueryDefinitionResponseDTO:
    return use_cases.get_query(query_id)


@router.put("/{query_id}", response_model=QueryDefinitionResponseDTO, summary="Actualizar una consulta")
def update_query(
    query_id: int,
    dto: QueryDefinitionUpdateDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> QueryDefinitionResponseDTO:
    return use_cases.update_query(query_id, dto)


@router.delete("/{query_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Eliminar una consulta")
def delete_query(
    query_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> None:
    use_cases.delete_query(query_id)


@router.post("/{query_id}/run", response_model=OperationResultDTO, summary="Ejecutar una consulta ahora")
async def run_query_now(
    query_id: int,
    dto: Optional[RunQueryRequestDTO] = Body(None),
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    """
    Ejecuta la consulta contra su perfil y retorna las filas en el formato
    de salida configurado (json o csv).
    """
    return await use_cases.run_query_now(query_id, dto.parameters if dto else None)


@router.post("/{query_id}/preview", response_model=OperationResultDTO, summary="Vista previa de un mapeo")
async def preview_mapping(
    query_id: int,
    dto: MappingPreviewRequestDTO,
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    """Aplica las reglas recibidas a las primeras filas sin guardar el mapeo."""
    return await use_cases.preview_mapping(query_id, dto)
