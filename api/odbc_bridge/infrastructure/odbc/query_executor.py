"""
Ejecutor de consultas sobre un ConnectionHandle.

Adapta la paginacion al dialecto del driver, normaliza los valores de las filas
y clasifica los errores del driver en una taxonomia estable.
"""
import time
import uuid
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from loguru import logger

from odbc_bridge.core.config import settings
from odbc_bridge.domain.entities.row_set import Row, RowSet
from odbc_bridge.infrastructure.odbc.connection_handle import ConnectionHandle
from odbc_bridge.infrastructure.odbc.sql_utils import replace_query_params, rewrite_pagination
from odbc_bridge.shared.constants.pipeline_constants import QueryErrorKind
from odbc_bridge.shared.exceptions.pipeline import QueryExecutionError


def classify_query_error(message: str) -> QueryErrorKind:
    """Clasifica el texto de un error del driver."""
    text = (message or "").lower()
    if "syntax" in text or "sintaxe" in text or "sintaxis" in text:
        return QueryErrorKind.SYNTAX
    if "column" in text and ("not found" in text or "unknown" in text or "invalid" in text):
        return QueryErrorKind.UNKNOWN_COLUMN
    if "table" in text and ("not found" in text or "unknown" in text or "does not exist" in text):
        return QueryErrorKind.UNKNOWN_TABLE
    if "permission" in text or "access denied" in text or "acesso negado" in text:
        return QueryErrorKind.PERMISSION_DENIED
    if "timeout" in text or "timed out" in text:
        return QueryErrorKind.TIMEOUT
    if "connection" in text and ("lost" in text or "closed" in text or "broken" in text):
        return QueryErrorKind.CONNECTION_LOST
    if "communication link failure" in text:
        return QueryErrorKind.CONNECTION_LOST
    return QueryErrorKind.UNKNOWN


def normalize_value(value: Any) -> Any:
    """Convierte valores del driver a escalares (None/int/float/bool/str/datetime)."""
    if value is None or isinstance(value, (bool, int, float, str, datetime)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, dt_time):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.hex()
    if isinstance(value, uuid.UUID):
        return str(value)
    return str(value)


def _unique_columns(names: Sequence[str]) -> List[str]:
    """Columnas repetidas (joins) reciben sufijo _2, _3..."""
    seen = {}
    result = []
    for name in names:
        count = seen.get(name, 0) + 1
        seen[name] = count
        result.append(name if count == 1 else f"{name}_{count}")
    return result


class QueryExecutor:
    """Ejecuta SQL sobre un handle resuelto."""

    def __init__(
        self,
        top_dialect_drivers: Optional[Sequence[str]] = None,
        query_timeout_s: int = settings.QUERY_TIMEOUT_S,
    ) -> None:
        drivers = top_dialect_drivers if top_dialect_drivers is not None else settings.top_dialect_drivers
        self._top_dialect_drivers = [d.lower() for d in drivers]
        self._query_timeout_s = query_timeout_s

    def driver_supports_limit(self, driver: str) -> bool:
        name = (driver or settings.DEFAULT_ODBC_DRIVER).lower()
        return not any(top in name for top in self._top_dialect_drivers)

    def prepare(self, sql: str, driver: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Sustituye parametros y adapta la paginacion al driver."""
        statement = replace_query_params(sql.strip(), params)
        if not self.driver_supports_limit(driver):
            statement = rewrite_pagination(statement)
        return statement

    def execute(
        self,
        handle: ConnectionHandle,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> RowSet:
        """
        Ejecuta la sentencia y retorna las filas normalizadas.

        Raises:
            QueryExecutionError: SQL vacio o error del driver clasificado.
        """
        if not sql or not sql.strip():
            raise QueryExecutionError(QueryErrorKind.INVALID_INPUT, "La consulta SQL esta vacia")

        statement = self.prepare(sql, handle.driver, params)
        started = time.monotonic()
        try:
            with handle.session() as conn:
                if self._query_timeout_s:
                    conn.timeout = self._query_timeout_s
                cursor = conn.cursor()
                try:
                    cursor.execute(statement)
                    if cursor.description is None:
                        columns: List[str] = []
                        raw_rows: list = []
                    else:
                        columns = _unique_columns([str(d[0]) for d in cursor.description])
                        raw_rows = cursor.fetchall()
                finally:
                    cursor.close()
        except Exception as e:
            message = str(e)
            kind = classify_query_error(message)
            logger.error(f"[ODBC] Error ejecutando consulta ({kind.value}): {message}")
            raise QueryExecutionError(kind, message) from e

        rows: List[Row] = [
            {column: normalize_value(value) for column, value in zip(columns, raw)}
            for raw in raw_rows
        ]
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"[ODBC] Consulta ejecutada en {elapsed_ms:.0f}ms: {len(rows)} registros "
            f"(perfil {handle.profile_key})"
        )
        return RowSet(columns=columns, rows=rows, elapsed_ms=elapsed_ms)
