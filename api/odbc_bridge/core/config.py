"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales del puente ODBC.
Los valores de API (url, api key, intervalo) pueden sobreescribirse en runtime
desde la tabla system_settings del almacen local.
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    Grupos:
    - Aplicacion/servidor (FastAPI + uvicorn)
    - Almacen local de configuracion (SQLAlchemy, SQLite por defecto)
    - Conexion ODBC (timeouts por candidato, estrategias de connection string)
    - Entrega HTTP (timeout, reintentos, backoff)
    - Scheduler (intervalo de sincronizacion, workers, gracia de apagado)
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="ODBC Bridge")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuracion del servidor
    HOST: str = Field(default="127.0.0.1")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Almacen local (conexiones, consultas, mapeos, tareas, logs)
    DATABASE_URL: str = Field(default="sqlite:///./odbc_bridge.db")

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")
    AUDIT_LOG_DIR: str = Field(default="logs/tasks")

    # API destino global (las tareas pueden sobreescribir url, metodo y headers)
    API_URL: str = Field(default="")
    API_KEY: str = Field(default="")

    # Entrega HTTP
    DELIVERY_TIMEOUT_S: float = Field(default=60.0)
    DELIVERY_MAX_RETRIES: int = Field(default=3)
    DELIVERY_BACKOFF_BASE_S: float = Field(default=2.0)

    # ODBC
    DEFAULT_ODBC_DRIVER: str = Field(default="SQL Anywhere 17")
    CONNECT_TIMEOUT_S: float = Field(default=30.0)
    SLOW_CONNECT_TIMEOUT_S: float = Field(default=60.0)
    # Drivers con arranque lento (coincidencia por substring, separados por coma)
    SLOW_DRIVERS: str = Field(default="SQL Anywhere")
    # Orden de estrategias de connection string (vacio = orden por defecto)
    CONNECTION_STRATEGIES: str = Field(default="")
    PROFILE_LOCK_TIMEOUT_S: float = Field(default=180.0)
    CONNECT_MAX_WORKERS: int = Field(default=4)
    # Drivers sin soporte de LIMIT (se reescribe a TOP / ROW_NUMBER)
    TOP_DIALECT_DRIVERS: str = Field(default="SQL Anywhere,SQL Server,Sybase,Adaptive Server")
    # Timeout de ejecucion de consultas en segundos (0 = sin limite)
    QUERY_TIMEOUT_S: int = Field(default=0)

    # Scheduler
    SCHEDULER_ENABLED: bool = Field(default=True)
    SCHEDULER_MAX_WORKERS: int = Field(default=8)
    SYNC_INTERVAL_MINUTES: int = Field(default=60)
    SHUTDOWN_GRACE_S: float = Field(default=30.0)

    # Timeouts de operaciones interactivas (UI)
    UI_TEST_CONNECTION_TIMEOUT_S: float = Field(default=65.0)
    UI_RUN_QUERY_TIMEOUT_S: float = Field(default=30.0)
    UI_EXECUTE_TASK_TIMEOUT_S: float = Field(default=65.0)

    @computed_field
    @property
    def slow_drivers(self) -> List[str]:
        """Lista de drivers considerados lentos."""
        return [d.strip() for d in self.SLOW_DRIVERS.split(",") if d.strip()]

    @computed_field
    @property
    def top_dialect_drivers(self) -> List[str]:
        """Drivers que usan TOP en lugar de LIMIT."""
        return [d.strip() for d in self.TOP_DIALECT_DRIVERS.split(",") if d.strip()]

    @computed_field
    @property
    def connection_strategies(self) -> List[str]:
        """Orden de estrategias configurado (lista vacia = orden por defecto)."""
        return [s.strip() for s in self.CONNECTION_STRATEGIES.split(",") if s.strip()]

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuracion
settings = Settings()
