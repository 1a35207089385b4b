"""
Entidad de dominio: ConnectionProfile (perfil de conexion ODBC).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ConnectionProfile:
    """
    Descripcion almacenada de como llegar a una base de datos via ODBC.
    Solo lectura para el pipeline; la password nunca aparece en repr().
    """

    id: Optional[int] = None
    name: str = ""
    driver: str = ""
    host: str = ""
    port: Optional[int] = None
    database: str = ""
    username: str = ""
    password: str = field(default="", repr=False)
    extra_params: Dict[str, Any] = field(default_factory=dict)
    connection_string: Optional[str] = field(default=None, repr=False)
    dsn: Optional[str] = None

    def __post_init__(self):
        """Validaciones despues de la inicializacion."""
        if not self.name:
            raise ValueError("El nombre de la conexion no puede estar vacio")
        if self.port is not None and not (0 < int(self.port) < 65536):
            raise ValueError(f"Puerto invalido: {self.port}")

    @property
    def cache_key(self) -> str:
        """Clave del cache de handles (perfiles sin id usan el nombre)."""
        return str(self.id) if self.id is not None else f"adhoc:{self.name}"

    def has_credentials(self) -> bool:
        return bool(self.username)
