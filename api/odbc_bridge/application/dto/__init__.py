"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .pipeline_dto import (
    ColumnMappingResponseDTO,
    ColumnMappingSaveDTO,
    ConnectionProfileCreateDTO,
    ConnectionProfileResponseDTO,
    ConnectionProfileUpdateDTO,
    DeliveryOutcomeDTO,
    LogEntryDTO,
    MappingPreviewRequestDTO,
    OperationResultDTO,
    QueryDefinitionCreateDTO,
    QueryDefinitionResponseDTO,
    QueryDefinitionUpdateDTO,
    RunQueryRequestDTO,
    ScheduledTaskCreateDTO,
    ScheduledTaskResponseDTO,
    ScheduledTaskUpdateDTO,
    SyncSettingsDTO,
    SyncSettingsResponseDTO,
    SyncSummaryDTO,
)

__all__ = [
    "ColumnMappingResponseDTO",
    "ColumnMappingSaveDTO",
    "ConnectionProfileCreateDTO",
    "ConnectionProfileResponseDTO",
    "ConnectionProfileUpdateDTO",
    "DeliveryOutcomeDTO",
    "LogEntryDTO",
    "MappingPreviewRequestDTO",
    "OperationResultDTO",
    "QueryDefinitionCreateDTO",
    "QueryDefinitionResponseDTO",
    "QueryDefinitionUpdateDTO",
    "RunQueryRequestDTO",
    "ScheduledTaskCreateDTO",
    "ScheduledTaskResponseDTO",
    "ScheduledTaskUpdateDTO",
    "SyncSettingsDTO",
    "SyncSettingsResponseDTO",
    "SyncSummaryDTO",
]
