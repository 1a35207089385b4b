"""
Reescritura de SQL para drivers legados.

- replace_query_params: sustituye :param / @param por literales SQL.
- rewrite_pagination: LIMIT/OFFSET -> SELECT TOP n o subconsulta ROW_NUMBER().
"""
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from loguru import logger


# "LIMIT n", "LIMIT n, m" (n = limite, m = offset) y "LIMIT n OFFSET m"
LIMIT_PATTERN = re.compile(
    r"\s+LIMIT\s+(\d+)(?:\s*,\s*(\d+)|\s+OFFSET\s+(\d+))?",
    re.IGNORECASE,
)
_ORDER_BY = re.compile(r"\s+ORDER\s+BY\s+", re.IGNORECASE)
_SELECT_HEAD = re.compile(r"^\s*SELECT\s+(DISTINCT\s+)?", re.IGNORECASE)
_PROJECTION = re.compile(r"SELECT\s+(?:DISTINCT\s+)?(?:TOP\s+\d+\s+)?(.+?)\s+FROM\s", re.IGNORECASE | re.DOTALL)
_IDENTIFIER = re.compile(r"^[\w\"\[\]`]+$")


def format_sql_value(value: Any) -> str:
    """Formatea un valor Python como literal SQL."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return "'" + value.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3] + "'"
    if isinstance(value, date):
        return "'" + value.isoformat() + "'"
    if isinstance(value, (list, tuple, set)):
        items = list(value)
        if not items:
            return "NULL"
        return "(" + ", ".join(format_sql_value(item) for item in items) + ")"
    return "'" + str(value).replace("'", "''") + "'"


def replace_query_params(sql: str, params: Optional[Mapping[str, Any]]) -> str:
    """Reemplaza :nombre y @nombre por el valor formateado."""
    if not sql or not params:
        return sql
    processed = sql
    for key, value in params.items():
        pattern = re.compile(r"[:@]" + re.escape(str(key)) + r"\b")
        literal = format_sql_value(value)
        processed = pattern.sub(lambda _m: literal, processed)
    logger.debug(f"[SQL] Parametros sustituidos: {processed[:100]}{'...' if len(processed) > 100 else ''}")
    return processed


def first_projected_column(sql: str) -> Optional[str]:
    """Primera expresion de la lista SELECT (None si no se puede determinar)."""
    match = _PROJECTION.search(sql)
    if not match:
        return None
    first = match.group(1).split(",")[0].strip()
    return first or None


def _output_name(expression: str) -> Optional[str]:
    """Nombre con el que la columna queda expuesta en una subconsulta."""
    alias = re.search(r"\s+AS\s+([\w\"\[\]`]+)\s*$", expression, re.IGNORECASE)
    if alias:
        return alias.group(1)
    tail = expression.split(".")[-1].strip()
    if tail == "*" or not _IDENTIFIER.match(tail):
        return None
    return tail


def parse_limit(sql: str) -> Optional[Tuple[int, Optional[int]]]:
    """Retorna (limite, offset) si la sentencia tiene clausula LIMIT."""
    match = LIMIT_PATTERN.search(sql)
    if not match:
        return None
    limit = int(match.group(1))
    raw_offset = match.group(2) or match.group(3)
    return limit, int(raw_offset) if raw_offset else None


def rewrite_pagination(sql: str) -> str:
    """
    Adapta LIMIT al idioma TOP de SQL Anywhere / SQL Server.

    Sin offset: SELECT TOP n ...
    Con offset: se asegura un ORDER BY (primera columna proyectada) y se envuelve
    la sentencia en una subconsulta numerada con ROW_NUMBER().
    """
    parsed = parse_limit(sql)
    if parsed is None:
        return sql

    limit, offset = parsed
    base = LIMIT_PATTERN.sub("", sql, count=1).rstrip().rstrip(";")

    if not offset:
        head = _SELECT_HEAD.match(base)
        if head is None:
            return base
        rewritten = base[: head.end()] + f"TOP {limit} " + base[head.end():]
        logger.debug(f"[SQL] LIMIT {limit} reescrito como TOP")
        return rewritten

    first_column = first_projected_column(base)
    if not _ORDER_BY.search(base) and first_column:
        base = f"{base} ORDER BY {first_column if first_column != '*' else '1'}"

    order_name = _output_name(first_column) if first_column else None
    over = f"ORDER BY {order_name}" if order_name else "ORDER BY (SELECT 1)"
    rewritten = (
        "SELECT * FROM ("
        f"SELECT *, ROW_NUMBER() OVER ({over}) AS rownum "
        f"FROM ({base}) AS innerQuery"
        ") AS outerQuery "
        f"WHERE rownum > {offset} AND rownum <= {offset + limit}"
    )
    logger.debug(f"[SQL] LIMIT {limit} OFFSET {offset} reescrito con ROW_NUMBER()")
    return rewritten
