"""
Estrategias de construccion de connection strings ODBC.

Los drivers legados (SQL Anywhere, drivers contables) no documentan que nombres
de campo esperan (SERVER vs ENG vs SERVERNAME, DATABASE vs DBN) y fallan sin
indicar cual falta. Por eso el resolver prueba una lista ordenada de
codificaciones. El orden es configurable via CONNECTION_STRATEGIES.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from odbc_bridge.domain.entities.connection_profile import ConnectionProfile
from odbc_bridge.shared.utils.masking import mask_connection_string


SQL_ANYWHERE_DEFAULT_PORT = 2638

Builder = Callable[[ConnectionProfile, str], Optional[str]]


@dataclass(frozen=True)
class ConnectionStrategy:
    """Estrategia nombrada: retorna None cuando el perfil no tiene los datos necesarios."""

    name: str
    build: Builder


@dataclass(frozen=True)
class ConnectionCandidate:
    """Connection string concreta a intentar (ordinal 1-indexed)."""

    ordinal: int
    strategy: str
    connection_string: str

    @property
    def masked(self) -> str:
        return mask_connection_string(self.connection_string)


def _quote(value) -> str:
    """Escapa valores ODBC que contienen separadores."""
    text = "" if value is None else str(value)
    if any(ch in text for ch in ";{}") or text != text.strip():
        return "{" + text.replace("}", "}}") + "}"
    return text


def _pairs(*items) -> str:
    """Serializa pares (clave, valor) omitiendo valores vacios."""
    parts = []
    for key, value in items:
        if value is None or value == "":
            continue
        parts.append(f"{key}={value}")
    return ";".join(parts) + ";"


def _credentials(profile: ConnectionProfile) -> str:
    return _pairs(("UID", _quote(profile.username) if profile.username else None),
                  ("PWD", _quote(profile.password) if profile.password else None))


def _extras(profile: ConnectionProfile) -> str:
    if not profile.extra_params:
        return ""
    return _pairs(*((k, _quote(v)) for k, v in profile.extra_params.items()))


def _explicit(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if profile.connection_string and profile.connection_string.strip():
        return profile.connection_string.strip()
    return None


def _dsn(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.dsn:
        return None
    base = _pairs(("DSN", _quote(profile.dsn)), ("SERVER", profile.host or None))
    return base + _credentials(profile) + _extras(profile)


def _provider(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.host:
        return None
    base = _pairs(
        ("Provider", "MSDASQL"),
        ("DRIVER", "{" + driver + "}"),
        ("SERVER", _quote(profile.host)),
        ("DATABASE", _quote(profile.database) if profile.database else None),
    )
    return base + _credentials(profile) + _extras(profile)


def _provider_dsn(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.dsn:
        return None
    return _pairs(("Provider", "MSDASQL"), ("DSN", _quote(profile.dsn))) + _credentials(profile) + _extras(profile)


def _driver_server(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.host:
        return None
    base = _pairs(
        ("Driver", "{" + driver + "}"),
        ("SERVER", _quote(profile.host)),
        ("PORT", profile.port),
        ("DATABASE", _quote(profile.database) if profile.database else None),
    )
    return base + _credentials(profile) + _extras(profile)


def _driver_eng(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.host:
        return None
    base = _pairs(
        ("Driver", "{" + driver + "}"),
        ("ENG", _quote(profile.host)),
        ("DBN", _quote(profile.database) if profile.database else None),
    )
    return base + _credentials(profile) + _extras(profile)


def _driver_servername(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.host:
        return None
    base = _pairs(
        ("Driver", "{" + driver + "}"),
        ("SERVERNAME", _quote(profile.host)),
        ("PORT", profile.port),
        ("DBN", _quote(profile.database) if profile.database else None),
    )
    return base + _credentials(profile) + _extras(profile)


def _commlinks(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if not profile.host or not profile.database:
        return None
    port = profile.port or SQL_ANYWHERE_DEFAULT_PORT
    base = _pairs(
        ("Driver", "{" + driver + "}"),
        ("ENG", _quote(profile.database)),
        ("DBN", _quote(profile.database)),
    )
    links = f"CommLinks=tcpip(HOST={profile.host};PORT={port});"
    return base + _credentials(profile) + links + _extras(profile)


def _sql_anywhere(profile: ConnectionProfile, driver: str) -> Optional[str]:
    if "sql anywhere" not in driver.lower() or not profile.host:
        return None
    port = profile.port or SQL_ANYWHERE_DEFAULT_PORT
    base = _pairs(
        ("Driver", "{" + driver + "}"),
        ("ENG", _quote(profile.host)),
        ("DBN", _quote(profile.database) if profile.database else None),
    )
    tail = f"APP=odbc-bridge;CHARSET=UTF8;CommLinks=tcpip(HOST={profile.host};PORT={port});"
    return base + _credentials(profile) + tail + _extras(profile)


DEFAULT_STRATEGIES: List[ConnectionStrategy] = [
    ConnectionStrategy("connection_string", _explicit),
    ConnectionStrategy("dsn", _dsn),
    ConnectionStrategy("provider", _provider),
    ConnectionStrategy("provider_dsn", _provider_dsn),
    ConnectionStrategy("driver_server", _driver_server),
    ConnectionStrategy("driver_eng", _driver_eng),
    ConnectionStrategy("driver_servername", _driver_servername),
    ConnectionStrategy("commlinks", _commlinks),
    ConnectionStrategy("sql_anywhere", _sql_anywhere),
]

STRATEGIES_BY_NAME: Dict[str, ConnectionStrategy] = {s.name: s for s in DEFAULT_STRATEGIES}


def strategies_from_names(names: Sequence[str]) -> List[ConnectionStrategy]:
    """
    Resuelve el orden configurado de estrategias.
    Lista vacia retorna el orden por defecto; nombres desconocidos fallan.
    """
    if not names:
        return list(DEFAULT_STRATEGIES)
    unknown = [n for n in names if n not in STRATEGIES_BY_NAME]
    if unknown:
        raise ValueError(
            f"Estrategias de conexion desconocidas: {unknown}. "
            f"Disponibles: {sorted(STRATEGIES_BY_NAME)}"
        )
    return [STRATEGIES_BY_NAME[n] for n in names]


def build_candidates(
    profile: ConnectionProfile,
    strategies: Sequence[ConnectionStrategy],
    default_driver: str,
) -> List[ConnectionCandidate]:
    """
    Genera los candidatos en orden. Las estrategias que no aplican al perfil
    se omiten y no consumen ordinal; los duplicados exactos tambien.
    """
    driver = (profile.driver or "").strip() or default_driver
    candidates: List[ConnectionCandidate] = []
    seen = set()
    for strategy in strategies:
        connection_string = strategy.build(profile, driver)
        if not connection_string or connection_string in seen:
            continue
        seen.add(connection_string)
        candidates.append(
            ConnectionCandidate(
                ordinal=len(candidates) + 1,
                strategy=strategy.name,
                connection_string=connection_string,
            )
        )
    return candidates
