"""
Constantes del pipeline de sincronizacion.
Define tipos de transformacion, clasificaciones de error y estados de tareas.
"""
from enum import Enum


class TransformKind(str, Enum):
    """Tipos de transformacion por columna."""
    NONE = "none"
    LOWERCASE = "lowercase"
    UPPERCASE = "uppercase"
    CAPITALIZE = "capitalize"
    TRIM = "trim"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    CONCAT = "concat"
    MATH = "math"
    REPLACE = "replace"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str) -> "TransformKind":
        """Tipo desconocido se trata como NONE (passthrough)."""
        try:
            return cls((value or "none").lower())
        except ValueError:
            return cls.NONE


class MathOperation(str, Enum):
    """Operaciones aritmeticas soportadas por la transformacion math."""
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"


class OutputFormat(str, Enum):
    """Formato de salida de una consulta."""
    JSON = "json"
    CSV = "csv"


class QueryErrorKind(str, Enum):
    """Clasificacion estable de errores de ejecucion de consultas."""
    SYNTAX = "syntax"
    UNKNOWN_COLUMN = "unknown_column"
    UNKNOWN_TABLE = "unknown_table"
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    CONNECTION_LOST = "connection_lost"
    INVALID_INPUT = "invalid_input"
    UNKNOWN = "unknown"


class ConnectionFailureKind(str, Enum):
    """Causa probable de un fallo de conexion."""
    DRIVER = "driver"
    CREDENTIALS = "credentials"
    SERVER = "server"
    DATABASE = "database"
    UNKNOWN = "unknown"


class DeliveryStatus(str, Enum):
    """Resultado de una entrega HTTP."""
    SUCCESS = "success"
    TRANSIENT = "transient"
    FATAL = "fatal"


class TaskState(str, Enum):
    """Estados de una tarea dentro del scheduler."""
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    FIRING = "firing"


class HttpMethod(str, Enum):
    """Metodos HTTP permitidos para la entrega."""
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"


class LogLevel(str, Enum):
    """Niveles de log persistidos en el almacen local."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# Job del scheduler para la sincronizacion completa
SYSTEM_SYNC_JOB_ID = "data_sync"
TASK_JOB_PREFIX = "task_"

# Literales que la transformacion boolean considera verdaderos
BOOLEAN_TRUE_LITERALS = frozenset({"true", "sim", "s", "yes", "y", "1"})

# Claves de system_settings
SETTING_API_URL = "api_url"
SETTING_API_KEY = "api_key"
SETTING_SYNC_INTERVAL = "sync_interval_minutes"
SETTING_LAST_SYNC = "last_sync_at"
