"""
Router principal de la API v1.
Agrupa todos los endpoints de la version 1.
"""
from fastapi import APIRouter

from odbc_bridge.api.v1.endpoints import connections, logs, mappings, queries, sync, tasks


# Router principal de la API v1
api_router = APIRouter(prefix="/v1")

api_router.include_router(connections.router)
api_router.include_router(queries.router)
api_router.include_router(mappings.router)
api_router.include_router(tasks.router)
api_router.include_router(sync.router)
api_router.include_router(logs.router)
