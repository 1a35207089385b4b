"""
Entidades del dominio.
"""
from odbc_bridge.domain.entities.connection_profile import ConnectionProfile
from odbc_bridge.domain.entities.query_definition import QueryDefinition
from odbc_bridge.domain.entities.column_mapping import ColumnMapping, ColumnRule, ConcatPart
from odbc_bridge.domain.entities.scheduled_task import ScheduledTask
from odbc_bridge.domain.entities.delivery_outcome import (
    DeliveryConfig,
    DeliveryOutcome,
    DeliveryPolicy,
)
from odbc_bridge.domain.entities.row_set import Row, RowSet

__all__ = [
    "ConnectionProfile",
    "QueryDefinition",
    "ColumnMapping",
    "ColumnRule",
    "ConcatPart",
    "ScheduledTask",
    "DeliveryConfig",
    "DeliveryOutcome",
    "DeliveryPolicy",
    "Row",
    "RowSet",
]
