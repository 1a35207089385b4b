"""
Modelos del almacen local (ORM).
"""
from sqlalchemy import Boolean, Column, DateTime, Enum as SQLEnum, Float, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.sql import func

from odbc_bridge.infrastructure.database.session import Base
from odbc_bridge.shared.constants.pipeline_constants import DeliveryStatus, HttpMethod, OutputFormat


class ConnectionProfileModel(Base):
    """Perfiles de conexion ODBC."""

    __tablename__ = "connection_profiles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    driver = Column(String(255), nullable=False, default="")
    host = Column(String(255), nullable=False, default="")
    port = Column(Integer, nullable=True)
    database = Column(String(255), nullable=False, default="")
    username = Column(String(255), nullable=False, default="")
    password = Column(String(255), nullable=False, default="")
    extra_params = Column(JSON, nullable=False, default=dict)
    connection_string = Column(Text, nullable=True)
    dsn = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ConnectionProfile(id={self.id}, name={self.name}, driver={self.driver})>"


class QueryDefinitionModel(Base):
    """Consultas SQL configuradas."""

    __tablename__ = "query_definitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sql = Column(Text, nullable=False)
    connection_id = Column(Integer, ForeignKey("connection_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    output_format = Column(SQLEnum(OutputFormat), nullable=False, default=OutputFormat.JSON)
    transform_hint = Column(String(100), nullable=True)
    parameters = Column(JSON, nullable=False, default=dict)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<QueryDefinition(id={self.id}, name={self.name})>"


class ColumnMappingModel(Base):
    """Configuraciones de transformacion por consulta."""

    __tablename__ = "column_mappings"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    query_id = Column(Integer, ForeignKey("query_definitions.id", ondelete="CASCADE"), nullable=False, index=True)
    rules = Column(JSON, nullable=False, default=dict)  # columna origen -> regla
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class ScheduledTaskModel(Base):
    """Tareas programadas (cron + consulta + destino)."""

    __tablename__ = "scheduled_tasks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    cron = Column(String(100), nullable=False)
    query_id = Column(Integer, ForeignKey("query_definitions.id", ondelete="CASCADE"), nullable=False, index=True)
    mapping_id = Column(Integer, ForeignKey("column_mappings.id", ondelete="SET NULL"), nullable=True)
    destination_url = Column(String(1024), nullable=False, default="")
    http_method = Column(SQLEnum(HttpMethod), nullable=False, default=HttpMethod.POST)
    headers = Column(JSON, nullable=False, default=dict)
    active = Column(Boolean, default=True, index=True)
    max_retries = Column(Integer, nullable=True)
    wrap_payload = Column(Boolean, default=False)
    last_run_at = Column(DateTime(timezone=True), nullable=True)
    last_run_success = Column(Boolean, nullable=True)
    last_run_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<ScheduledTask(id={self.id}, name={self.name}, cron={self.cron})>"


class DeliveryOutcomeModel(Base):
    """Resultados de disparos (append-only)."""

    __tablename__ = "delivery_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, nullable=True, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    record_count = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False)
    status = Column(SQLEnum(DeliveryStatus), nullable=False)
    status_code = Column(Integer, nullable=True)
    error_class = Column(String(100), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=True)
    duration_ms = Column(Float, nullable=True)


class LogEntryModel(Base):
    """Log de eventos visible desde la UI."""

    __tablename__ = "logs"

    id = Column(Integer, primary_key=True, index=True)
    level = Column(String(20), nullable=False, index=True)
    message = Column(Text, nullable=False)
    context = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class SystemSettingsModel(Base):
    """Configuraciones clave/valor (api_url, api_key, intervalo, ultima sincronizacion)."""

    __tablename__ = "system_settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
