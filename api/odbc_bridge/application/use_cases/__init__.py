"""
Casos de uso de la aplicacion.
"""
from .configuration_use_cases import ConfigurationUseCases
from .pipeline_use_cases import PipelineUseCases

__all__ = ["ConfigurationUseCases", "PipelineUseCases"]
