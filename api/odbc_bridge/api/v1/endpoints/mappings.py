"""
Endpoints para mapeos de columnas (configuracion de transformacion).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status

from odbc_bridge.api.v1.dependencies.use_case_deps import get_configuration_use_cases
from odbc_bridge.application.dto.pipeline_dto import ColumnMappingResponseDTO, ColumnMappingSaveDTO
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases


router = APIRouter(prefix="/mappings", tags=["Mappings"])


@router.get("/", response_model=List[ColumnMappingResponseDTO], summary="Listar mapeos")
def list_mappings(
    query_id: Optional[int] = None,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[ColumnMappingResponseDTO]:
    return use_cases.list_mappings(query_id)


@router.post(
    "/",
    response_model=ColumnMappingResponseDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Crear un mapeo",
)
def create_mapping(
    dto: ColumnMappingSaveDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ColumnMappingResponseDTO:
    """
    Valida y guarda el mapeo. Responde 400 con la lista de errores si hay
    nombres destino vacios o duplicados.
    """
    return use_cases.save_mapping(dto)


@router.get("/{mapping_id}", response_model=ColumnMappingResponseDTO, summary="Obtener un mapeo")
def get_mapping(
    mapping_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ColumnMappingResponseDTO:
    return use_cases.get_mapping(mapping_id)


@router.put("/{mapping_id}", response_model=ColumnMappingResponseDTO, summary="Actualizar un mapeo")
def update_mapping(
    mapping_id: int,
    dto: ColumnMappingSaveDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ColumnMappingResponseDTO:
    return use_cases.save_mapping(dto, mapping_id=mapping_id)


@router.delete("/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Eliminar un mapeo")
def delete_mapping(
    mapping_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> None:
    use_cases.delete_mapping(mapping_id)
