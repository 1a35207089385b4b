"""
Endpoints para perfiles de conexion ODBC.
"""
from typing import List

from fastapi import APIRouter, Depends, status

from odbc_bridge.api.v1.dependencies.use_case_deps import (
    get_configuration_use_cases,
    get_pipeline_use_cases,
)
from odbc_bridge.application.dto.pipeline_dto import (
    ConnectionProfileCreateDTO,
    ConnectionProfileResponseDTO,
    ConnectionProfileUpdateDTO,
    OperationResultDTO,
)
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases


router = APIRouter(prefix="/connections", tags=["Connections"])


@router.get("/", response_model=List[ConnectionProfileResponseDTO], summary="Listar perfiles de conexion")
def list_connections(
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[ConnectionProfileResponseDTO]:
    return use_cases.list_connections()


@router.post(
    "/",
    response_model=ConnectionProfileResponseDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Crear un perfil de conexion",
)
def create_connection(
    dto: ConnectionProfileCreateDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ConnectionProfileResponseDTO:
    """
    Crea un perfil. La password se guarda en el almacen local y nunca se
    retorna; la connection string se retorna enmascarada.
    """
    return use_cases.create_connection(dto)


@router.post("/test", response_model=OperationResultDTO, summary="Probar parametros de conexion")
async def test_connection(
    dto: ConnectionProfileCreateDTO,
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    """
    Prueba los parametros sin guardarlos. Siempre responde 200: el resultado
    va en `success` / `message`.
    """
    return await use_cases.test_connection(dto)


@router.get("/{profile_id}", response_model=ConnectionProfileResponseDTO, summary="Obtener un perfil")
def get_connection(
    profile_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ConnectionProfileResponseDTO:
    return use_cases.get_connection(profile_id)


@router.put("/{profile_id}", response_model=ConnectionProfileResponseDTO, summary="Actualizar un perfil")
def update_connection(
    profile_id: int,
    dto: ConnectionProfileUpdateDTO,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> ConnectionProfileResponseDTO:
    """Actualiza el perfil e invalida su conexion cacheada."""
    return use_cases.update_connection(profile_id, dto)


@router.delete("/{profile_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Eliminar un perfil")
def delete_connection(
    profile_id: int,
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> None:
    use_cases.delete_connection(profile_id)


@router.post("/{profile_id}/test", response_model=OperationResultDTO, summary="Probar un perfil guardado")
async def test_saved_connection(
    profile_id: int,
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    return await use_cases.test_saved_connection(profile_id)


@router.post("/{profile_id}/diagnose", response_model=OperationResultDTO, summary="Diagnosticar un perfil")
async def diagnose_connection(
    profile_id: int,
    use_cases: PipelineUseCases = Depends(get_pipeline_use_cases),
) -> OperationResultDTO:
    """
    Diagnostico paso a paso: drivers instalados, servidor, credenciales,
    base de datos y conexion real, con sugerencias para el paso que falla.
    """
    return await use_cases.diagnose(profile_id)
