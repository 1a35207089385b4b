"""
AuditLogger - Logs de auditoria por tarea programada.

Cada tarea tiene su propio archivo con el detalle de cada disparo
(inicio, registros extraidos, intentos de entrega y resultado), ademas
de un log diario general del pipeline.
"""
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from odbc_bridge.core.config import settings


class TaskAuditLogger:
    """
    Gestor de logs de auditoria de tareas.

    Uso:
        TaskAuditLogger.initialize()
        task_log = TaskAuditLogger.get_task_logger(task.id, task.name)
        task_log.info("...")
        TaskAuditLogger.log_outcome(task.id, outcome.to_dict())
    """

    FILE_TIMESTAMP_FORMAT = "%Y-%m-%d"
    LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {message}"

    _base_dir: Path = Path(settings.AUDIT_LOG_DIR)
    _task_loggers: Dict[int, Any] = {}
    _task_sinks: Dict[int, int] = {}
    _pipeline_sink: Optional[int] = None
    _initialized: bool = False

    @classmethod
    def initialize(cls, base_dir: Optional[str] = None) -> None:
        """
        Crea la carpeta de logs y el sink diario del pipeline.
        Debe llamarse al inicio de la aplicacion.
        """
        if cls._initialized:
            return
        if base_dir:
            cls._base_dir = Path(base_dir)
        cls._base_dir.mkdir(parents=True, exist_ok=True)

        today = datetime.now().strftime(cls.FILE_TIMESTAMP_FORMAT)
        cls._pipeline_sink = logger.add(
            str(cls._base_dir / f"pipeline_{today}.log"),
            format=cls.LOG_FORMAT,
            filter=lambda record: record["extra"].get("context") == "pipeline",
            rotation="1 day",
            retention="30 days",
            level="DEBUG",
        )
        cls._initialized = True
        logger.info(f"TaskAuditLogger inicializado en {cls._base_dir}")

    @classmethod
    def get_task_logger(cls, task_id: int, task_name: str = "task"):
        """Obtiene (o crea) el logger ligado al archivo de la tarea."""
        if not cls._initialized:
            cls.initialize()
        if task_id not in cls._task_loggers:
            safe_name = re.sub(r"[^a-z0-9]+", "_", task_name.lower()).strip("_") or "task"
            log_file = cls._base_dir / f"task_{task_id}_{safe_name}.log"
            sink_id = logger.add(
                str(log_file),
                format=cls.LOG_FORMAT,
                filter=lambda record, tid=task_id: record["extra"].get("task_id") == tid,
                rotation="10 MB",
                retention=5,
                level="DEBUG",
            )
            cls._task_sinks[task_id] = sink_id
            cls._task_loggers[task_id] = logger.bind(task_id=task_id, context="pipeline")
        return cls._task_loggers[task_id]

    @classmethod
    def log_outcome(cls, task_id: int, outcome: Dict[str, Any]) -> None:
        """Registra el resultado serializado de un disparo."""
        task_logger = cls._task_loggers.get(task_id) or logger.bind(task_id=task_id, context="pipeline")
        level = "info" if outcome.get("success") else "warning"
        getattr(task_logger, level)(f"OUTCOME {json.dumps(outcome, default=str)}")

    @classmethod
    def release_task_logger(cls, task_id: int) -> bool:
        """Quita el sink de una tarea eliminada."""
        sink_id = cls._task_sinks.pop(task_id, None)
        cls._task_loggers.pop(task_id, None)
        if sink_id is None:
            return False
        logger.remove(sink_id)
        return True

    @classmethod
    def shutdown(cls) -> int:
        """Cierra todos los sinks de tareas. Retorna cuantos se cerraron."""
        task_ids = list(cls._task_sinks)
        for task_id in task_ids:
            cls.release_task_logger(task_id)
        if cls._pipeline_sink is not None:
            logger.remove(cls._pipeline_sink)
            cls._pipeline_sink = None
        cls._initialized = False
        return len(task_ids)
