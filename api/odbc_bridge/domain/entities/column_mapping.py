"""
Entidad de dominio: ColumnMapping (configuracion de transformacion).

Un mapeo asocia cada columna de origen a una regla: nombre destino,
tipo de transformacion, flag de inclusion y parametros de la operacion.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from odbc_bridge.shared.constants.pipeline_constants import MathOperation, TransformKind


@dataclass(frozen=True)
class ConcatPart:
    """Campo hermano a concatenar y su separador."""

    field: str
    separator: str = ""


@dataclass(frozen=True)
class ColumnRule:
    """Regla de una columna de origen."""

    target_name: str
    kind: TransformKind = TransformKind.NONE
    include: bool = True
    concat_parts: Tuple[ConcatPart, ...] = ()
    math_operation: Optional[MathOperation] = None
    math_field: Optional[str] = None
    replace_pattern: Optional[str] = None
    replace_with: str = ""

    @classmethod
    def from_dict(cls, source_column: str, data: Dict[str, Any]) -> "ColumnRule":
        """
        Construye una regla desde el formato persistido.

        Acepta las claves del formato de la UI legada (targetName,
        transformType, includeInOutput, concatFields, mathOperation,
        mathFields.field2, replaceConfig) y las claves snake_case propias.
        """
        kind = TransformKind.parse(data.get("kind") or data.get("transformType") or "none")

        raw_parts = data.get("concat_parts") or data.get("concatFields") or []
        parts = tuple(
            ConcatPart(field=str(p.get("field", "")), separator=str(p.get("separator", "") or ""))
            for p in raw_parts
            if p.get("field")
        )

        raw_op = data.get("math_operation") or data.get("mathOperation")
        try:
            math_operation = MathOperation(raw_op) if raw_op else None
        except ValueError:
            math_operation = None
        math_field = data.get("math_field") or (data.get("mathFields") or {}).get("field2")

        replace_cfg = data.get("replaceConfig") or {}
        replace_pattern = data.get("replace_pattern", replace_cfg.get("search"))
        replace_with = data.get("replace_with", replace_cfg.get("replace", "")) or ""

        target = data.get("target_name", data.get("targetName"))
        include = data.get("include", data.get("includeInOutput", True))
        return cls(
            target_name=source_column if target is None else str(target),
            kind=kind,
            include=bool(include),
            concat_parts=parts,
            math_operation=math_operation,
            math_field=math_field,
            replace_pattern=replace_pattern,
            replace_with=str(replace_with),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_name": self.target_name,
            "kind": self.kind.value,
            "include": self.include,
            "concat_parts": [{"field": p.field, "separator": p.separator} for p in self.concat_parts],
            "math_operation": self.math_operation.value if self.math_operation else None,
            "math_field": self.math_field,
            "replace_pattern": self.replace_pattern,
            "replace_with": self.replace_with,
        }


@dataclass
class ColumnMapping:
    """Conjunto de reglas por columna de una consulta (orden preservado)."""

    id: Optional[int] = None
    name: str = ""
    query_id: Optional[int] = None
    rules: Dict[str, ColumnRule] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnMapping":
        raw_rules = data.get("rules") or data.get("columns") or {}
        rules = {
            source: rule if isinstance(rule, ColumnRule) else ColumnRule.from_dict(source, rule)
            for source, rule in raw_rules.items()
        }
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            query_id=data.get("query_id"),
            rules=rules,
        )

    def included_rules(self) -> List[Tuple[str, ColumnRule]]:
        """Pares (columna origen, regla) incluidos en la salida."""
        return [(source, rule) for source, rule in self.rules.items() if rule.include]

    def rules_to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {source: rule.to_dict() for source, rule in self.rules.items()}
