"""
Diagnostico de conexiones ODBC.

- classify_connection_error: causa probable + sugestion a partir del texto
  del error del driver (se adjunta a DatabaseConnectionError).
- ConnectionDiagnostics: verificacion paso a paso de un perfil
  (drivers instalados, host/puerto, credenciales, base, conexion real).
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from loguru import logger

from odbc_bridge.domain.entities.connection_profile import ConnectionProfile
from odbc_bridge.shared.constants.pipeline_constants import ConnectionFailureKind
from odbc_bridge.shared.exceptions.pipeline import DatabaseConnectionError


_RULES: List[Tuple[ConnectionFailureKind, Tuple[str, ...], str]] = [
    (
        ConnectionFailureKind.DRIVER,
        ("driver", "dsn", "data source"),
        "Verifique que el driver ODBC este instalado y registrado (odbcinst -q -d) "
        "o que la DSN exista en las fuentes de datos del sistema",
    ),
    (
        ConnectionFailureKind.SERVER,
        ("timeout", "timed out"),
        "El servidor no respondio a tiempo: verifique que este en ejecucion y que "
        "el firewall permita el puerto (SQL Anywhere usa 2638 por defecto)",
    ),
    (
        ConnectionFailureKind.CREDENTIALS,
        ("login", "password", "senha", "usuario", "user id", "auth"),
        "Verifique que el usuario y la password sean correctos",
    ),
    (
        ConnectionFailureKind.SERVER,
        ("server", "host", "connect", "network", "communication"),
        "Verifique el nombre del servidor/host; intente usar la IP en lugar del nombre",
    ),
    (
        ConnectionFailureKind.DATABASE,
        ("database", "banco", "dbn"),
        "Verifique que el nombre de la base de datos sea correcto",
    ),
]

_DEFAULT_SUGGESTION = "Verifique que el servidor de base de datos este en ejecucion y la configuracion de red"


def classify_connection_error(message: str) -> Tuple[ConnectionFailureKind, str]:
    """Retorna (causa, sugestion) para el texto de un error de conexion."""
    text = (message or "").lower()
    for kind, needles, suggestion in _RULES:
        if any(needle in text for needle in needles):
            return kind, suggestion
    return ConnectionFailureKind.UNKNOWN, _DEFAULT_SUGGESTION


@dataclass
class DiagnosticStep:
    """Resultado de un paso del diagnostico."""

    name: str
    status: str  # ok | warning | error
    message: str


@dataclass
class DiagnosticReport:
    success: bool
    steps: List[DiagnosticStep] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    strategy: Optional[str] = None
    attempt_index: Optional[int] = None

    def add(self, name: str, status: str, message: str) -> None:
        self.steps.append(DiagnosticStep(name=name, status=status, message=message))

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "steps": [s.__dict__ for s in self.steps],
            "suggestions": self.suggestions,
            "strategy": self.strategy,
            "attempt_index": self.attempt_index,
        }


def _installed_drivers() -> List[str]:
    import pyodbc  # requiere unixODBC / driver manager en el host

    return list(pyodbc.drivers())


class ConnectionDiagnostics:
    """Ejecuta un diagnostico completo de un perfil usando el resolver."""

    def __init__(
        self,
        resolver,
        drivers_provider: Callable[[], List[str]] = _installed_drivers,
    ) -> None:
        self._resolver = resolver
        self._drivers_provider = drivers_provider

    def diagnose(self, profile: ConnectionProfile) -> DiagnosticReport:
        report = DiagnosticReport(success=False)
        driver = (profile.driver or "").strip() or self._resolver.default_driver

        # 1. Driver instalado
        try:
            installed = self._drivers_provider()
            if any(driver.lower() == d.lower() for d in installed):
                report.add("driver", "ok", f"Driver '{driver}' encontrado en el sistema")
            elif profile.dsn or profile.connection_string:
                report.add("driver", "warning", f"Driver '{driver}' no registrado; se usara DSN/connection string")
            else:
                report.add("driver", "error", f"Driver '{driver}' no encontrado. Instalados: {installed}")
                report.suggestions.append(f"Instale el driver '{driver}' y registrelo en odbcinst.ini")
        except Exception as e:
            report.add("driver", "warning", f"No se pudo listar drivers ODBC: {e}")

        # 2. Servidor / puerto
        if profile.host:
            report.add("server", "ok", f"Host configurado: {profile.host}:{profile.port or 'default'}")
        elif profile.dsn or profile.connection_string:
            report.add("server", "ok", "Host definido por DSN/connection string")
        else:
            report.add("server", "error", "No hay host, DSN ni connection string configurados")
            report.suggestions.append("Configure el host del servidor o una DSN")

        # 3. Credenciales
        if profile.has_credentials():
            report.add("credentials", "ok", f"Usuario configurado: {profile.username}")
        else:
            report.add("credentials", "warning", "Sin usuario configurado; se intentara sin credenciales")

        # 4. Base de datos
        if profile.database:
            report.add("database", "ok", f"Base de datos: {profile.database}")
        else:
            report.add("database", "warning", "Sin nombre de base; se usara la base por defecto del servidor")

        # 5. Conexion real (sin cachear: el perfil puede no estar guardado)
        try:
            handle = self._resolver.connect_once(profile)
            report.success = True
            report.strategy = handle.strategy
            report.attempt_index = handle.attempt_index
            report.add("connection", "ok", f"Conexion exitosa (estrategia {handle.strategy}, intento {handle.attempt_index})")
            handle.close()
        except DatabaseConnectionError as e:
            report.add("connection", "error", e.message)
            if e.suggestion:
                report.suggestions.append(e.suggestion)
            logger.warning(f"Diagnostico de '{profile.name}' fallo: {e.message}")

        return report
