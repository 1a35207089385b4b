"""
Ejecutor de operaciones ODBC bloqueantes en threads separados.

Las operaciones que dispara la UI (probar conexion, ejecutar consulta,
ejecutar tarea) usan drivers bloqueantes. Este modulo las corre en un
ThreadPoolExecutor dedicado para no bloquear el event loop de FastAPI, con
un timeout adicional a nivel asyncio.

Uso:
    from odbc_bridge.infrastructure.odbc.odbc_executor import run_odbc_with_timeout

    outcome = await run_odbc_with_timeout(sync_service.run_task, task_id, timeout_seconds=65)
"""
import asyncio
import atexit
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, TypeVar

from loguru import logger


T = TypeVar("T")

ODBC_MAX_WORKERS = 4

_odbc_executor = ThreadPoolExecutor(
    max_workers=ODBC_MAX_WORKERS,
    thread_name_prefix="odbc-ui-",
)


def _shutdown_executor() -> None:
    """Cierra el executor al terminar el proceso."""
    logger.info("Cerrando ThreadPoolExecutor de operaciones ODBC...")
    _odbc_executor.shutdown(wait=False, cancel_futures=True)


atexit.register(_shutdown_executor)


async def run_odbc(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Ejecuta una funcion bloqueante en el pool dedicado."""
    if kwargs:
        func = partial(func, **kwargs)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_odbc_executor, func, *args)


async def run_odbc_with_timeout(
    func: Callable[..., T],
    *args: Any,
    timeout_seconds: float = 30.0,
    **kwargs: Any,
) -> T:
    """
    Igual que run_odbc pero con limite de espera.

    El thread no se interrumpe: si el timeout vence, la operacion sigue hasta
    terminar (p.ej. un disparo de tarea igual registra su resultado).

    Raises:
        asyncio.TimeoutError: Si la operacion excede el timeout
    """
    if kwargs:
        func = partial(func, **kwargs)
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(_odbc_executor, func, *args),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(f"Timeout ({timeout_seconds}s) en operacion ODBC: {getattr(func, '__name__', func)}")
        raise


def get_executor_stats() -> dict:
    """Estadisticas del pool (monitoreo)."""
    return {
        "max_workers": ODBC_MAX_WORKERS,
        "thread_name_prefix": "odbc-ui-",
        "active_threads": len(_odbc_executor._threads),
        "queued_tasks": _odbc_executor._work_queue.qsize(),
    }
