"""
Handle reutilizable sobre una conexion ODBC viva.
"""
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from loguru import logger

from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils


PROBE_SQL = "SELECT 1 AS test"


class ConnectionHandle:
    """
    Envuelve la conexion DB-API del driver.

    Una conexion pyodbc no debe usarse desde dos threads a la vez, por eso
    todo acceso pasa por `session()`, que serializa el uso del handle.
    """

    def __init__(
        self,
        profile_key: str,
        raw_connection: Any,
        *,
        strategy: str,
        attempt_index: int,
        masked_connection_string: str,
        driver: str = "",
    ) -> None:
        self.profile_key = profile_key
        self.strategy = strategy
        self.attempt_index = attempt_index
        self.masked_connection_string = masked_connection_string
        self.driver = driver
        self.connected_at: datetime = DateTimeUtils.now_utc()
        self._raw = raw_connection
        self._lock = threading.RLock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def session(self) -> Iterator[Any]:
        """Acceso exclusivo a la conexion subyacente."""
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Handle del perfil {self.profile_key} ya fue cerrado")
            yield self._raw

    def probe(self) -> bool:
        """Round-trip trivial para verificar que la conexion sigue viva."""
        try:
            with self.session() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(PROBE_SQL)
                    cursor.fetchall()
                finally:
                    cursor.close()
            return True
        except Exception as e:
            logger.warning(f"Probe fallido para perfil {self.profile_key}: {e}")
            return False

    def close(self) -> None:
        """Cierra la conexion; llamadas repetidas no hacen nada."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._raw.close()
            except Exception as e:
                logger.warning(f"Error cerrando conexion del perfil {self.profile_key}: {e}")

    def info(self) -> dict:
        return {
            "profile": self.profile_key,
            "strategy": self.strategy,
            "attempt_index": self.attempt_index,
            "connection_string": self.masked_connection_string,
            "connected_at": DateTimeUtils.to_iso_string(self.connected_at),
            "closed": self._closed,
        }

    def __repr__(self) -> str:
        return (
            f"<ConnectionHandle(profile={self.profile_key}, strategy={self.strategy}, "
            f"attempt={self.attempt_index})>"
        )


def close_quietly(raw_connection: Optional[Any]) -> None:
    """Cierra una conexion cruda huerfana (p.ej. conectada despues de un timeout)."""
    if raw_connection is None:
        return
    try:
        raw_connection.close()
    except Exception as e:
        logger.debug(f"Error cerrando conexion huerfana: {e}")
