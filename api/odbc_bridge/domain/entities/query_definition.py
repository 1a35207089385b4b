"""
Entidad de dominio: QueryDefinition (consulta SQL configurada).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from odbc_bridge.shared.constants.pipeline_constants import OutputFormat


@dataclass
class QueryDefinition:
    """Sentencia SQL asociada a un perfil de conexion."""

    id: Optional[int] = None
    name: str = ""
    sql: str = ""
    connection_id: Optional[int] = None
    output_format: OutputFormat = OutputFormat.JSON
    transform_hint: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    active: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("El nombre de la consulta no puede estar vacio")
        if isinstance(self.output_format, str):
            self.output_format = OutputFormat(self.output_format.lower())
