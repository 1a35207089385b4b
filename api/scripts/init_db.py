"""
Script para inicializar el almacen local (tablas de conexiones, consultas,
mapeos, tareas, resultados, logs y system_settings).
"""
import sys
from pathlib import Path

from loguru import logger

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from odbc_bridge.core.config import settings  # noqa: E402
from odbc_bridge.infrastructure.database.session import close_db, init_db  # noqa: E402
from odbc_bridge.shared.constants.pipeline_constants import SETTING_SYNC_INTERVAL  # noqa: E402
from odbc_bridge.infrastructure.repositories.config_store_repository import SqlAlchemyConfigStore  # noqa: E402


def main() -> None:
    """Crea las tablas y registra el intervalo de sincronizacion por defecto."""
    logger.info(f"Inicializando almacen local en {settings.DATABASE_URL}...")

    try:
        init_db()
        store = SqlAlchemyConfigStore()
        if store.get_setting(SETTING_SYNC_INTERVAL) is None:
            store.set_setting(
                SETTING_SYNC_INTERVAL,
                settings.SYNC_INTERVAL_MINUTES,
                "Intervalo de sincronizacion automatica",
            )
        logger.success("Almacen local inicializado correctamente")
    except Exception as e:
        logger.error(f"Error al inicializar el almacen local: {e}")
        raise
    finally:
        close_db()


if __name__ == "__main__":
    main()
