"""
Almacen local de configuracion.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from odbc_bridge.infrastructure.database.models import (
    ConnectionProfileModel,
    QueryDefinitionModel,
    ColumnMappingModel,
    ScheduledTaskModel,
    DeliveryOutcomeModel,
    LogEntryModel,
    SystemSettingsModel,
)
