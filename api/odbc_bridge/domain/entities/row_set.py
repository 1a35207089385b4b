"""
Entidad de dominio: RowSet (resultado tabular de una consulta).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

Row = Dict[str, Any]


@dataclass
class RowSet:
    """Filas como dicts ordenados columna -> valor escalar."""

    columns: List[str] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def __len__(self) -> int:
        return len(self.rows)
