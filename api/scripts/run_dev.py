"""
Script para ejecutar el servidor en modo desarrollo (reload activado).
"""
import sys
from pathlib import Path

import uvicorn

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from odbc_bridge.core.config import settings  # noqa: E402


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        app_dir=str(Path(__file__).resolve().parents[1]),
        log_level=settings.LOG_LEVEL.lower()
    )
