"""
Utilidades para manejo de fechas y horas.
"""
from datetime import date, datetime, timezone
from typing import Any, Optional


# Formatos aceptados cuando el texto no es ISO 8601
_FALLBACK_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%Y%m%d",
)


class DateTimeUtils:
    """Clase de utilidades para operaciones con fechas y horas."""

    @staticmethod
    def now_utc() -> datetime:
        """
        Obtiene la fecha y hora actual en UTC.

        Returns:
            datetime: Fecha y hora actual en UTC
        """
        return datetime.now(timezone.utc)

    @staticmethod
    def to_iso_string(dt: datetime) -> str:
        """
        Convierte un datetime a string ISO 8601.
        Los datetimes con zona horaria se normalizan a UTC con sufijo 'Z'.
        """
        if dt.tzinfo is not None:
            return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return dt.isoformat()

    @staticmethod
    def from_iso_string(iso_string: str) -> Optional[datetime]:
        """
        Convierte un string ISO 8601 a datetime.

        Returns:
            Optional[datetime]: Objeto datetime o None si hay error
        """
        try:
            return datetime.fromisoformat(iso_string.strip().replace("Z", "+00:00"))
        except (ValueError, TypeError, AttributeError):
            return None

    @classmethod
    def parse_timestamp(cls, value: Any) -> Optional[datetime]:
        """
        Interpreta un valor arbitrario como timestamp.

        Acepta datetime, date, numeros (epoch en segundos) y texto en ISO 8601
        o en los formatos dd/mm/yyyy mas comunes de las bases legadas.
        Vacio o no interpretable retorna None.
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, (int, float)):
            try:
                return datetime.fromtimestamp(value, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None

        text = str(value).strip()
        if not text:
            return None

        parsed = cls.from_iso_string(text)
        if parsed is not None:
            return parsed

        for fmt in _FALLBACK_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        return None
