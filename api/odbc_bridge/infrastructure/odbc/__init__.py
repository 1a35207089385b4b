"""
Capa de conectividad ODBC.
Resolucion de conexiones con fallback de connection strings, cache de handles
y ejecucion de consultas sobre drivers legados.
"""
from odbc_bridge.infrastructure.odbc.connection_handle import ConnectionHandle
from odbc_bridge.infrastructure.odbc.connection_resolver import ConnectionResolver
from odbc_bridge.infrastructure.odbc.diagnostics import ConnectionDiagnostics
from odbc_bridge.infrastructure.odbc.query_executor import QueryExecutor


__all__ = [
    "ConnectionHandle",
    "ConnectionResolver",
    "ConnectionDiagnostics",
    "QueryExecutor",
]
