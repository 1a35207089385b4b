"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from typing import Callable

from fastapi import FastAPI
from loguru import logger

from odbc_bridge.core.config import settings
from odbc_bridge.infrastructure.database.session import close_db, init_db
from odbc_bridge.infrastructure.odbc.odbc_executor import run_odbc
from odbc_bridge.shared.constants.pipeline_constants import SETTING_SYNC_INTERVAL
from odbc_bridge.shared.utils.audit_logger import TaskAuditLogger


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI (con `state.container` ya construido)

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Inicializa la base local, los logs y el scheduler."""
        try:
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            _validate_config()

            logger.add(
                settings.LOG_FILE,
                rotation="500 MB",
                retention="10 days",
                level=settings.LOG_LEVEL,
            )

            init_db()
            logger.info("Base de datos local inicializada")

            TaskAuditLogger.initialize(settings.AUDIT_LOG_DIR)

            container = app.state.container
            if settings.SCHEDULER_ENABLED:
                tasks = container.store.get_active_scheduled_tasks()
                interval = int(container.store.get_setting(SETTING_SYNC_INTERVAL, settings.SYNC_INTERVAL_MINUTES))
                results = container.scheduler.start(tasks, interval)
                for task_id, result in results.items():
                    if not result.ok:
                        logger.warning(f"Tarea {task_id} no programada: {result.error}")
            else:
                logger.warning("Scheduler deshabilitado (SCHEDULER_ENABLED=false)")

            logger.success("Aplicacion iniciada correctamente")
            _print_available_urls()

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    if not settings.API_URL:
        logger.warning("CONFIG: API_URL no configurada - las tareas sin URL propia usaran system_settings.api_url")
    if settings.SYNC_INTERVAL_MINUTES <= 0:
        logger.warning("CONFIG: SYNC_INTERVAL_MINUTES <= 0 - sincronizacion automatica desactivada")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    access_host = "localhost" if settings.HOST == "0.0.0.0" else settings.HOST
    base_url = f"http://{access_host}:{settings.PORT}"

    logger.opt(colors=True).info("<bold><green>" + "=" * 60 + "</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info(f"<cyan>  API v1:      {base_url}/api/v1</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 60 + "</green></bold>")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Espera los disparos en curso y libera conexiones."""
        logger.info("Cerrando aplicacion...")

        # La espera de gracia es bloqueante
        await run_odbc(app.state.container.close, settings.SHUTDOWN_GRACE_S)

        closed_sinks = TaskAuditLogger.shutdown()
        logger.info(f"Logs de auditoria cerrados: {closed_sinks}")

        close_db()
        logger.info("Conexiones de base de datos cerradas")

        logger.success("Aplicacion cerrada correctamente")

    return shutdown
