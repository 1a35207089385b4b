"""
Excepciones de la aplicacion.
"""
from .base import AppException
from .domain import DomainException, EntityNotFoundException, ValidationException
from .pipeline import (
    DatabaseConnectionError,
    DeliveryError,
    PipelineException,
    QueryExecutionError,
    TransformationError,
)

__all__ = [
    "AppException",
    "DomainException",
    "EntityNotFoundException",
    "ValidationException",
    "PipelineException",
    "DatabaseConnectionError",
    "QueryExecutionError",
    "TransformationError",
    "DeliveryError",
]
