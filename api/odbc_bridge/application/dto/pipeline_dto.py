"""
DTOs de la capa de aplicacion: configuracion del pipeline y operaciones de UI.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from odbc_bridge.shared.constants.pipeline_constants import HttpMethod, OutputFormat


class OperationResultDTO(BaseModel):
    """Respuesta uniforme de las operaciones disparadas desde la UI."""

    success: bool
    message: str
    data: Optional[Any] = None


# ----------------------------------------------------------------------
# Perfiles de conexion
# ----------------------------------------------------------------------


class ConnectionProfileCreateDTO(BaseModel):
    """DTO para crear (o probar) un perfil de conexion."""

    name: str = Field(..., min_length=1, max_length=255, description="Nombre del perfil")
    driver: str = Field("", description="Driver ODBC (vacio usa DEFAULT_ODBC_DRIVER)")
    host: str = ""
    port: Optional[int] = Field(None, ge=1, le=65535)
    database: str = ""
    username: str = ""
    password: str = Field("", repr=False)
    extra_params: Dict[str, str] = Field(default_factory=dict)
    connection_string: Optional[str] = Field(None, repr=False, description="Connection string completa")
    dsn: Optional[str] = None


class ConnectionProfileUpdateDTO(BaseModel):
    """DTO para actualizar un perfil. Password None conserva la actual."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    driver: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = Field(None, ge=1, le=65535)
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = Field(None, repr=False)
    extra_params: Optional[Dict[str, str]] = None
    connection_string: Optional[str] = Field(None, repr=False)
    dsn: Optional[str] = None


class ConnectionProfileResponseDTO(BaseModel):
    """Perfil sin credenciales en claro."""

    id: int
    name: str
    driver: str
    host: str
    port: Optional[int]
    database: str
    username: str
    has_password: bool
    extra_params: Dict[str, str]
    connection_string: Optional[str] = Field(None, description="Enmascarada")
    dsn: Optional[str]


# ----------------------------------------------------------------------
# Consultas
# ----------------------------------------------------------------------


class QueryDefinitionCreateDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sql: str = Field(..., min_length=1)
    connection_id: int
    output_format: OutputFormat = OutputFormat.JSON
    transform_hint: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    active: bool = True


class QueryDefinitionUpdateDTO(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sql: Optional[str] = Field(None, min_length=1)
    connection_id: Optional[int] = None
    output_format: Optional[OutputFormat] = None
    transform_hint: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    active: Optional[bool] = None


class QueryDefinitionResponseDTO(BaseModel):
    id: int
    name: str
    sql: str
    connection_id: int
    output_format: OutputFormat
    transform_hint: Optional[str]
    parameters: Dict[str, Any]
    active: bool


class RunQueryRequestDTO(BaseModel):
    """Parametros opcionales que sobreescriben los de la consulta guardada."""

    parameters: Dict[str, Any] = Field(default_factory=dict)


# ----------------------------------------------------------------------
# Mapeos
# ----------------------------------------------------------------------


class ColumnMappingSaveDTO(BaseModel):
    """
    Mapeo de columnas. `rules` es un objeto columna_origen -> regla; acepta
    las claves del formato legado (targetName, transformType, includeInOutput...).
    """

    name: str = Field(..., min_length=1, max_length=255)
    query_id: int
    rules: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ColumnMappingResponseDTO(BaseModel):
    id: int
    name: str
    query_id: int
    rules: Dict[str, Dict[str, Any]]


class MappingPreviewRequestDTO(BaseModel):
    """Vista previa: aplica reglas a las primeras filas de una consulta sin guardar."""

    rules: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    limit: int = Field(10, ge=1, le=500)


# ----------------------------------------------------------------------
# Tareas
# ----------------------------------------------------------------------


class ScheduledTaskCreateDTO(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    cron: str = Field(..., min_length=1, description="Expresion cron de 5 campos")
    query_id: int
    mapping_id: Optional[int] = None
    destination_url: str = Field("", description="Vacio usa api_url global")
    http_method: HttpMethod = HttpMethod.POST
    headers: Dict[str, str] = Field(default_factory=dict)
    active: bool = True
    max_retries: Optional[int] = Field(None, ge=0, le=10)
    wrap_payload: bool = False

    @field_validator("cron")
    @classmethod
    def strip_cron(cls, v: str) -> str:
        return v.strip()


class ScheduledTaskUpdateDTO(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    cron: Optional[str] = Field(None, min_length=1)
    query_id: Optional[int] = None
    mapping_id: Optional[int] = None
    destination_url: Optional[str] = None
    http_method: Optional[HttpMethod] = None
    headers: Optional[Dict[str, str]] = None
    active: Optional[bool] = None
    max_retries: Optional[int] = Field(None, ge=0, le=10)
    wrap_payload: Optional[bool] = None


class ScheduledTaskResponseDTO(BaseModel):
    id: int
    name: str
    cron: str
    query_id: int
    mapping_id: Optional[int]
    destination_url: str
    http_method: HttpMethod
    headers: Dict[str, str]
    active: bool
    max_retries: Optional[int]
    wrap_payload: bool
    state: str = "unscheduled"
    last_run_at: Optional[datetime] = None
    last_run_success: Optional[bool] = None
    last_run_message: Optional[str] = None


# ----------------------------------------------------------------------
# Sincronizacion y logs
# ----------------------------------------------------------------------


class SyncSettingsDTO(BaseModel):
    """Configuracion global de entrega y sincronizacion automatica."""

    api_url: Optional[str] = None
    api_key: Optional[str] = Field(None, repr=False)
    sync_interval_minutes: Optional[int] = Field(None, ge=0, le=10080, description="0 desactiva la sincronizacion automatica")


class SyncSettingsResponseDTO(BaseModel):
    api_url: str
    api_key: str = Field(..., description="Enmascarada")
    sync_interval_minutes: int


class DeliveryOutcomeDTO(BaseModel):
    task_id: Optional[int]
    success: bool
    record_count: int
    status: str
    status_code: Optional[int] = None
    error_class: Optional[str] = None
    retry_count: int = 0
    message: str = ""
    duration_ms: Optional[float] = None
    timestamp: Optional[str] = None


class LogEntryDTO(BaseModel):
    id: int
    level: str
    message: str
    context: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class SyncSummaryDTO(BaseModel):
    total_tasks: int
    succeeded: int
    failed: int
    outcomes: List[DeliveryOutcomeDTO]
