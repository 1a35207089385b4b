"""
Lock por perfil de conexion.

Motivacion:
- Dos disparos que necesitan el mismo perfil no deben abrir dos sesiones
  ODBC en paralelo: el segundo espera el probe/connect del primero y
  reutiliza el handle resultante.
- Perfiles distintos no se bloquean entre si (no hay lock global).

Caracteristicas:
- Lock por profile key (threading.Lock, el pipeline corre en threads)
- Timeout configurable para evitar deadlocks
- Limpieza de locks de perfiles eliminados
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from loguru import logger


DEFAULT_LOCK_TIMEOUT = 180.0


class ProfileLockTimeoutError(Exception):
    """Excepcion lanzada cuando no se puede adquirir el lock dentro del timeout."""

    def __init__(self, profile_key: str, timeout: float):
        self.profile_key = profile_key
        self.timeout = timeout
        super().__init__(
            f"Timeout ({timeout}s) esperando la conexion en curso del perfil: {profile_key}"
        )


class ProfileLockManager:
    """Gestor de locks por clave de perfil."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._meta_lock = threading.Lock()

    def _get_or_create_lock(self, profile_key: str) -> threading.Lock:
        with self._meta_lock:
            lock = self._locks.get(profile_key)
            if lock is None:
                lock = threading.Lock()
                self._locks[profile_key] = lock
            return lock

    @contextmanager
    def lock(self, profile_key: str, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Iterator[None]:
        """
        Context manager para adquirir el lock de un perfil.

        Args:
            profile_key: Clave del perfil (id del perfil)
            timeout: Espera maxima en segundos; None o <= 0 espera indefinidamente.

        Raises:
            ProfileLockTimeoutError: Si no se adquiere dentro del timeout.
        """
        lock = self._get_or_create_lock(profile_key)

        if timeout and timeout > 0:
            if not lock.acquire(timeout=timeout):
                logger.warning(
                    f"Timeout adquiriendo lock para perfil {profile_key} (timeout: {timeout}s)"
                )
                raise ProfileLockTimeoutError(profile_key, timeout)
        else:
            lock.acquire()

        try:
            yield
        finally:
            lock.release()

    def remove_lock(self, profile_key: str) -> bool:
        """
        Elimina el lock de un perfil si no esta adquirido.

        Returns:
            True si se elimino, False si no existia o esta en uso
        """
        with self._meta_lock:
            lock = self._locks.get(profile_key)
            if lock is None:
                return False
            if lock.acquire(blocking=False):
                lock.release()
                del self._locks[profile_key]
                logger.debug(f"Lock eliminado para perfil: {profile_key}")
                return True
            logger.warning(f"No se puede eliminar lock del perfil {profile_key}: en uso")
            return False

    def get_active_locks_count(self) -> int:
        """Numero de locks registrados (monitoreo)."""
        with self._meta_lock:
            return len(self._locks)
