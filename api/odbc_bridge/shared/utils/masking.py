"""
Enmascarado de credenciales para logs y mensajes de error.
"""
import re
from typing import Dict, Mapping


_SECRET_PAIR = re.compile(r"\b(PWD|PASSWORD)\s*=\s*(\{[^}]*\}|[^;]*)", re.IGNORECASE)
MASK = "***"


def mask_connection_string(connection_string: str) -> str:
    """Reemplaza el valor de PWD/PASSWORD por '***' conservando el resto."""
    if not connection_string:
        return connection_string
    return _SECRET_PAIR.sub(lambda m: f"{m.group(1)}={MASK}", connection_string)


def mask_secret(value: str, visible: int = 4) -> str:
    """Muestra solo los ultimos caracteres de un secreto (api keys)."""
    if not value:
        return ""
    if len(value) <= visible:
        return MASK
    return f"{MASK}{value[-visible:]}"


def mask_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copia de headers con Authorization enmascarado."""
    masked = {}
    for key, value in headers.items():
        if key.lower() in ("authorization", "x-api-key", "api-key"):
            masked[key] = mask_secret(str(value))
        else:
            masked[key] = value
    return masked
