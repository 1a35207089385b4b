"""
Endpoints para el log de eventos del pipeline.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from odbc_bridge.api.v1.dependencies.use_case_deps import get_configuration_use_cases
from odbc_bridge.application.dto.pipeline_dto import DeliveryOutcomeDTO, LogEntryDTO
from odbc_bridge.application.use_cases.configuration_use_cases import ConfigurationUseCases
from odbc_bridge.shared.constants.pipeline_constants import LogLevel


router = APIRouter(prefix="/logs", tags=["Logs"])


@router.get("/", response_model=List[LogEntryDTO], summary="Listar logs")
def list_logs(
    level: Optional[LogLevel] = None,
    limit: int = Query(100, ge=1, le=1000),
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[LogEntryDTO]:
    return use_cases.list_logs(level.value if level else None, limit)


@router.delete("/", summary="Limpiar logs")
def clear_logs(
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> Dict[str, int]:
    return {"deleted": use_cases.clear_logs()}


@router.get("/outcomes", response_model=List[DeliveryOutcomeDTO], summary="Ultimos resultados de entrega")
def list_outcomes(
    limit: int = Query(50, ge=1, le=500),
    use_cases: ConfigurationUseCases = Depends(get_configuration_use_cases),
) -> List[DeliveryOutcomeDTO]:
    return use_cases.list_outcomes(None, limit)
