"""
Resolver de conexiones ODBC.

Dado un ConnectionProfile produce un ConnectionHandle vivo:
1. Si hay un handle en cache para el perfil, lo valida con un probe.
2. Si no (o el probe falla), prueba los candidatos de connection string en
   orden, cada uno con su propio timeout. El primero que conecta gana.
3. Si todos fallan, lanza DatabaseConnectionError con los intentos enmascarados.

La adquisicion se serializa por perfil: un segundo disparo que necesita el
mismo perfil espera el connect en curso y reutiliza su handle.
"""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from odbc_bridge.core.config import settings
from odbc_bridge.domain.entities.connection_profile import ConnectionProfile
from odbc_bridge.infrastructure.odbc.connection_handle import ConnectionHandle, close_quietly
from odbc_bridge.infrastructure.odbc.connection_strings import (
    ConnectionCandidate,
    ConnectionStrategy,
    build_candidates,
    strategies_from_names,
)
from odbc_bridge.infrastructure.odbc.diagnostics import classify_connection_error
from odbc_bridge.infrastructure.odbc.profile_lock import ProfileLockManager, ProfileLockTimeoutError
from odbc_bridge.shared.constants.pipeline_constants import ConnectionFailureKind
from odbc_bridge.shared.exceptions.pipeline import DatabaseConnectionError
from odbc_bridge.shared.utils.masking import mask_connection_string


ConnectFn = Callable[[str, float], Any]


def pyodbc_connect(connection_string: str, timeout: float) -> Any:
    """Conector por defecto: pyodbc con login timeout y autocommit."""
    import pyodbc  # requiere unixODBC / driver manager en el host

    return pyodbc.connect(connection_string, timeout=int(timeout), autocommit=True)


class ConnectTimeoutError(Exception):
    """El candidato no conecto dentro de su timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Timeout al intentar conectar a la base de datos ({timeout:g}s)")


class ConnectionResolver:
    """
    Cache de handles por perfil + fallback de connection strings.

    Args:
        connect_fn: Funcion (connection_string, timeout) -> conexion DB-API.
        strategies: Orden de estrategias (None = CONNECTION_STRATEGIES o defecto).
    """

    def __init__(
        self,
        connect_fn: ConnectFn = pyodbc_connect,
        *,
        strategies: Optional[Sequence[ConnectionStrategy]] = None,
        default_driver: str = settings.DEFAULT_ODBC_DRIVER,
        connect_timeout_s: float = settings.CONNECT_TIMEOUT_S,
        slow_connect_timeout_s: float = settings.SLOW_CONNECT_TIMEOUT_S,
        slow_drivers: Optional[Sequence[str]] = None,
        lock_timeout_s: float = settings.PROFILE_LOCK_TIMEOUT_S,
        max_workers: int = settings.CONNECT_MAX_WORKERS,
    ) -> None:
        self._connect_fn = connect_fn
        self._strategies = list(strategies) if strategies is not None else strategies_from_names(
            settings.connection_strategies
        )
        self.default_driver = default_driver
        self._connect_timeout_s = connect_timeout_s
        self._slow_connect_timeout_s = slow_connect_timeout_s
        self._slow_drivers = [d.lower() for d in (slow_drivers if slow_drivers is not None else settings.slow_drivers)]
        self._lock_timeout_s = lock_timeout_s
        self._locks = ProfileLockManager()
        self._cache: Dict[str, ConnectionHandle] = {}
        self._cache_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="odbc-connect-")
        self._connect_count = 0

    # ------------------------------------------------------------------
    # API publica
    # ------------------------------------------------------------------

    def resolve(self, profile: ConnectionProfile) -> ConnectionHandle:
        """
        Retorna el handle cacheado si sigue vivo, o conecta uno nuevo.

        Raises:
            DatabaseConnectionError: Si ningun candidato conecta.
        """
        key = profile.cache_key
        try:
            with self._locks.lock(key, timeout=self._lock_timeout_s):
                cached = self._get_cached(key)
                if cached is not None:
                    if cached.probe():
                        logger.debug(f"[ODBC] Reutilizando conexion en cache para '{profile.name}'")
                        return cached
                    logger.warning(f"[ODBC] Conexion en cache de '{profile.name}' no responde, reconectando")
                    self.invalidate(key)

                handle = self._connect(profile)
                with self._cache_lock:
                    self._cache[key] = handle
                logger.info(
                    f"[ODBC] Conexion con '{profile.name}' almacenada en cache "
                    f"(estrategia {handle.strategy}, tentativa {handle.attempt_index})"
                )
                return handle
        except ProfileLockTimeoutError as e:
            raise DatabaseConnectionError(
                str(e),
                kind=ConnectionFailureKind.UNKNOWN,
                suggestion="Otra conexion al mismo perfil sigue en curso; reintente mas tarde",
                last_error=e,
                profile_id=profile.id,
            ) from e

    def connect_once(self, profile: ConnectionProfile) -> ConnectionHandle:
        """Conecta sin usar ni poblar el cache (pruebas de conexion desde la UI)."""
        return self._connect(profile)

    def invalidate(self, profile_key) -> bool:
        """Cierra y elimina del cache el handle de un perfil."""
        with self._cache_lock:
            handle = self._cache.pop(str(profile_key), None)
        if handle is None:
            return False
        handle.close()
        logger.info(f"[ODBC] Conexion del perfil {profile_key} invalidada")
        return True

    def forget(self, profile_key) -> None:
        """Invalida el handle y descarta el lock de un perfil eliminado."""
        self.invalidate(profile_key)
        self._locks.remove_lock(str(profile_key))

    def close_all(self) -> int:
        """Cierra todos los handles cacheados. Retorna cuantos se cerraron."""
        with self._cache_lock:
            handles = list(self._cache.values())
            self._cache.clear()
        for handle in handles:
            handle.close()
        logger.info(f"[ODBC] Conexiones cerradas: {len(handles)}")
        return len(handles)

    def shutdown(self) -> None:
        """Cierra handles y el executor de conexion."""
        self.close_all()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def timeout_for(self, profile: ConnectionProfile) -> float:
        """Timeout por candidato: mayor para drivers de arranque lento."""
        driver = ((profile.driver or "").strip() or self.default_driver).lower()
        if any(slow in driver for slow in self._slow_drivers):
            return self._slow_connect_timeout_s
        return self._connect_timeout_s

    def candidates_for(self, profile: ConnectionProfile) -> List[ConnectionCandidate]:
        return build_candidates(profile, self._strategies, self.default_driver)

    def get_stats(self) -> dict:
        with self._cache_lock:
            cached = [h.info() for h in self._cache.values()]
            connect_count = self._connect_count
        return {
            "cached_connections": cached,
            "connect_count": connect_count,
            "strategies": [s.name for s in self._strategies],
            "active_profile_locks": self._locks.get_active_locks_count(),
        }

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _get_cached(self, key: str) -> Optional[ConnectionHandle]:
        with self._cache_lock:
            return self._cache.get(key)

    def _connect(self, profile: ConnectionProfile) -> ConnectionHandle:
        candidates = self.candidates_for(profile)
        if not candidates:
            raise DatabaseConnectionError(
                f"El perfil '{profile.name}' no tiene datos suficientes para construir una connection string",
                kind=ConnectionFailureKind.SERVER,
                suggestion="Configure host, DSN o una connection string",
                profile_id=profile.id,
            )

        timeout = self.timeout_for(profile)
        attempted: List[str] = []
        last_error: Optional[BaseException] = None
        started = time.monotonic()

        for candidate in candidates:
            attempted.append(f"{candidate.ordinal}. [{candidate.strategy}] {candidate.masked}")
            logger.info(
                f"[ODBC] Tentativa {candidate.ordinal}/{len(candidates)} ({candidate.strategy}) "
                f"para '{profile.name}': {candidate.masked}"
            )
            try:
                raw = self._connect_with_timeout(candidate.connection_string, timeout)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"[ODBC] Tentativa {candidate.ordinal} fallo: {mask_connection_string(str(e))}"
                )
                continue

            with self._cache_lock:
                self._connect_count += 1
            elapsed = time.monotonic() - started
            logger.success(
                f"[ODBC] Conexion establecida con '{profile.name}' en {elapsed:.2f}s "
                f"usando tentativa {candidate.ordinal} ({candidate.strategy})"
            )
            return ConnectionHandle(
                profile.cache_key,
                raw,
                strategy=candidate.strategy,
                attempt_index=candidate.ordinal,
                masked_connection_string=candidate.masked,
                driver=(profile.driver or self.default_driver),
            )

        last_message = mask_connection_string(str(last_error)) if last_error else "sin detalle"
        kind, suggestion = classify_connection_error(last_message)
        logger.error(
            f"[ODBC] No fue posible conectar con '{profile.name}' tras {len(attempted)} tentativas: {last_message}"
        )
        raise DatabaseConnectionError(
            f"No fue posible establecer conexion tras {len(attempted)} tentativas: {last_message}",
            kind=kind,
            suggestion=suggestion,
            attempts=attempted,
            last_error=last_error,
            profile_id=profile.id,
        )

    def _connect_with_timeout(self, connection_string: str, timeout: float) -> Any:
        future: Future = self._executor.submit(self._connect_fn, connection_string, timeout)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            # La conexion puede completarse despues; se cierra al llegar
            future.add_done_callback(
                lambda f: close_quietly(f.result()) if not f.cancelled() and f.exception() is None else None
            )
            raise ConnectTimeoutError(timeout)
