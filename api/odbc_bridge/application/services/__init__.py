"""
Servicios de aplicacion.

Contiene la logica del pipeline que no pertenece a un caso de uso
especifico: transformacion de filas y orquestacion de disparos.
"""
from .transformation_engine import TransformationEngine
from .sync_service import SyncService

__all__ = ["TransformationEngine", "SyncService"]
