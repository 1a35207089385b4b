"""
Motor de transformacion de filas.

Convierte el resultado crudo de una consulta a la forma destino segun un
ColumnMapping: renombrado, conversion de caja, coercion de tipos,
concatenacion, aritmetica, sustitucion por regex e inclusion/exclusion.

Las transformaciones forman un conjunto cerrado (TransformKind) despachado por
tabla; no hay evaluacion de codigo de usuario.
"""
import csv
import io
import math
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger

from odbc_bridge.domain.entities.column_mapping import ColumnMapping, ColumnRule
from odbc_bridge.domain.entities.row_set import Row
from odbc_bridge.shared.constants.pipeline_constants import (
    BOOLEAN_TRUE_LITERALS,
    MathOperation,
    OutputFormat,
    TransformKind,
)
from odbc_bridge.shared.exceptions.pipeline import TransformationError
from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils


_LEADING_FLOAT = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_JS_GROUP_REF = re.compile(r"\$(\d+)")


def parse_number(value: Any) -> float:
    """
    Interpreta un valor como float; lo no numerico retorna 0.
    Para texto se toma el prefijo numerico ("12.5kg" -> 12.5).
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_FLOAT.match(str(value))
        if not match:
            return 0.0
        try:
            number = float(match.group(0))
        except ValueError:
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _text_only(func: Callable[[str], str]) -> Callable[[Any, ColumnRule, Row], Any]:
    def apply(value: Any, rule: ColumnRule, row: Row) -> Any:
        return func(value) if isinstance(value, str) else value
    return apply


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:].lower()


def _to_number(value: Any, rule: ColumnRule, row: Row) -> float:
    return parse_number(value)


def _to_boolean(value: Any, rule: ColumnRule, row: Row) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in BOOLEAN_TRUE_LITERALS
    return bool(value)


def _to_date(value: Any, rule: ColumnRule, row: Row) -> Optional[str]:
    parsed = DateTimeUtils.parse_timestamp(value)
    if parsed is None:
        return None
    return DateTimeUtils.to_iso_string(parsed)


def _lookup(row: Row, field: str) -> Any:
    """Busca un campo hermano; los drivers legados suelen cambiar la caja."""
    if field in row:
        return row[field]
    lowered = field.lower()
    for key, value in row.items():
        if key.lower() == lowered:
            return value
    return None


def _concat(value: Any, rule: ColumnRule, row: Row) -> str:
    result = "" if value is None else str(value)
    for part in rule.concat_parts:
        sibling = _lookup(row, part.field)
        result += part.separator + ("" if sibling is None else str(sibling))
    return result


def _math(value: Any, rule: ColumnRule, row: Row) -> Any:
    if rule.math_operation is None:
        return value
    first = parse_number(value)
    second = parse_number(_lookup(row, rule.math_field)) if rule.math_field else 0.0
    if rule.math_operation == MathOperation.ADD:
        return first + second
    if rule.math_operation == MathOperation.SUBTRACT:
        return first - second
    if rule.math_operation == MathOperation.MULTIPLY:
        return first * second
    if rule.math_operation == MathOperation.DIVIDE:
        return first / second if second != 0 else 0.0
    return first


def _replace(value: Any, rule: ColumnRule, row: Row) -> Any:
    if not isinstance(value, str) or not rule.replace_pattern:
        return value
    replacement = _JS_GROUP_REF.sub(r"\\g<\1>", rule.replace_with or "")
    try:
        return re.sub(rule.replace_pattern, replacement, value)
    except re.error as e:
        logger.warning(f"[Transform] Patron invalido '{rule.replace_pattern}': {e}")
        return value


def _passthrough(value: Any, rule: ColumnRule, row: Row) -> Any:
    return value


TRANSFORMS: Dict[TransformKind, Callable[[Any, ColumnRule, Row], Any]] = {
    TransformKind.NONE: _passthrough,
    TransformKind.CUSTOM: _passthrough,
    TransformKind.LOWERCASE: _text_only(str.lower),
    TransformKind.UPPERCASE: _text_only(str.upper),
    TransformKind.CAPITALIZE: _text_only(_capitalize),
    TransformKind.TRIM: _text_only(str.strip),
    TransformKind.NUMBER: _to_number,
    TransformKind.BOOLEAN: _to_boolean,
    TransformKind.DATE: _to_date,
    TransformKind.CONCAT: _concat,
    TransformKind.MATH: _math,
    TransformKind.REPLACE: _replace,
}


def apply_rule(value: Any, rule: ColumnRule, row: Row) -> Any:
    """Aplica una regla a un valor de la fila."""
    return TRANSFORMS.get(rule.kind, _passthrough)(value, rule, row)


def target_name_for(source: str, rule: ColumnRule) -> str:
    return rule.target_name.strip() if rule.target_name and rule.target_name.strip() else source.lower()


class TransformationEngine:
    """Aplica ColumnMappings a conjuntos de filas."""

    def transform(self, rows: Iterable[Row], mapping: Optional[ColumnMapping]) -> List[Row]:
        """
        Transforma cada fila segun el mapeo.

        - Solo las columnas incluidas llegan a la salida, en el orden del mapeo.
        - Una columna de origen ausente en la fila se transforma como None.
        - Sin mapeo (o sin columnas incluidas) se aplica la transformacion por
          defecto: nombres de columna en minusculas.
        """
        rows = list(rows)
        if mapping is None or not mapping.included_rules():
            return self.default_transform(rows)

        included = mapping.included_rules()
        output: List[Row] = []
        for row in rows:
            new_row: Row = {}
            for source, rule in included:
                value = _lookup(row, source)
                new_row[target_name_for(source, rule)] = apply_rule(value, rule, row)
            output.append(new_row)

        logger.debug(
            f"[Transform] {len(output)} registros transformados con '{mapping.name}' "
            f"({len(included)} columnas)"
        )
        return output

    @staticmethod
    def default_transform(rows: Iterable[Row]) -> List[Row]:
        """Transformacion por defecto: claves en minusculas."""
        return [{str(key).lower(): value for key, value in row.items()} for row in rows]

    @staticmethod
    def validation_errors(mapping: ColumnMapping) -> List[str]:
        """
        Lista de problemas del mapeo (vacia si es valido):
        sin columnas incluidas, nombres destino vacios, duplicados
        (sin distinguir mayusculas) y patrones regex invalidos.
        """
        errors: List[str] = []
        included = mapping.included_rules()
        if not included:
            errors.append("Debe incluir al menos una columna en la salida")

        seen: Dict[str, str] = {}
        reported = set()
        for source, rule in included:
            name = (rule.target_name or "").strip()
            if not name:
                errors.append(f"La columna '{source}' tiene nombre destino vacio")
                continue
            key = name.lower()
            if key in seen and key not in reported:
                errors.append(
                    f"Nombre destino duplicado '{name}' (columnas '{seen[key]}' y '{source}')"
                )
                reported.add(key)
            seen.setdefault(key, source)

            if rule.kind == TransformKind.REPLACE and rule.replace_pattern:
                try:
                    re.compile(rule.replace_pattern)
                except re.error as e:
                    errors.append(f"Patron invalido en la columna '{source}': {e}")
        return errors

    def validate_mapping(self, mapping: ColumnMapping) -> None:
        """
        Valida el mapeo antes de persistirlo.

        Raises:
            TransformationError: Con un mensaje por cada nombre problematico.
        """
        errors = self.validation_errors(mapping)
        if errors:
            logger.warning(f"[Transform] Mapeo '{mapping.name}' invalido: {errors}")
            raise TransformationError(errors, mapping_name=mapping.name)

    @staticmethod
    def format_rows(rows: List[Row], output_format: OutputFormat) -> Any:
        """Renderiza las filas como lista de objetos (json) o texto delimitado (csv)."""
        if output_format == OutputFormat.CSV:
            return rows_to_csv(rows)
        return rows


def rows_to_csv(rows: List[Row]) -> str:
    """CSV con encabezado tomado de la primera fila; None se escribe vacio."""
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if row.get(h) is None else _csv_cell(row.get(h)) for h in headers])
    return buffer.getvalue().rstrip("\n")


def _csv_cell(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value
