"""
CLI: ejecuta una sincronizacion una sola vez, sin levantar la API.

Uso recomendado:
  - Diagnostico de una tarea desde la terminal.
  - Job externo (cron/systemd timer) cuando el scheduler embebido esta apagado.

Ejecucion:
  python scripts/run_sync.py --all
  python scripts/run_sync.py --task-id 3
  python scripts/run_sync.py --list
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from odbc_bridge.core.config import settings  # noqa: E402
from odbc_bridge.core.container import build_container  # noqa: E402
from odbc_bridge.infrastructure.database.session import close_db, init_db  # noqa: E402
from odbc_bridge.shared.utils.audit_logger import TaskAuditLogger  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincronizacion ODBC -> API (una ejecucion)")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--task-id", type=int, help="Ejecuta solo esta tarea")
    group.add_argument("--all", action="store_true", help="Ejecuta todas las tareas activas")
    group.add_argument("--list", action="store_true", help="Lista las tareas configuradas")
    parser.add_argument("--no-audit", action="store_true", help="No escribir logs de auditoria por tarea")
    args = parser.parse_args()

    init_db()
    if not args.no_audit:
        TaskAuditLogger.initialize(settings.AUDIT_LOG_DIR)
    container = build_container(settings, audit=not args.no_audit)

    try:
        if args.list:
            for task in container.store.list_scheduled_tasks():
                state = "activa" if task.active else "inactiva"
                logger.info(f"[{task.id}] {task.name} cron='{task.cron}' ({state})")
            return 0

        if args.task_id is not None:
            outcome = container.sync_service.run_task(args.task_id)
            print(json.dumps(outcome.to_dict(), ensure_ascii=False, indent=2))
            return 0 if outcome.success else 1

        summary = container.sync_service.run_all()
        logger.info(f"Sincronizacion: {summary.succeeded}/{summary.total_tasks} tareas exitosas")
        for outcome in summary.outcomes:
            print(json.dumps(outcome.to_dict(), ensure_ascii=False))
        return 0 if summary.success else 1
    finally:
        container.close(grace_s=0)
        TaskAuditLogger.shutdown()
        close_db()


if __name__ == "__main__":
    raise SystemExit(main())
