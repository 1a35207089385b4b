"""
Configuración de fixtures para pytest.

- Almacen local en SQLite en memoria.
- Conector ODBC falso (conexiones y cursores DB-API en memoria).
- Sesion HTTP falsa para el cliente de entrega.
"""
from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional, Sequence

import pytest

from odbc_bridge.infrastructure.database import models  # noqa: F401  registra los modelos
from odbc_bridge.infrastructure.database.session import Base, build_engine, build_session_factory
from odbc_bridge.infrastructure.repositories.config_store_repository import SqlAlchemyConfigStore


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite://"


# ----------------------------------------------------------------------
# ODBC falso
# ----------------------------------------------------------------------


class FakeCursor:
    def __init__(self, connection: "FakeConnection") -> None:
        self._connection = connection
        self.description = None
        self._rows: List[tuple] = []

    def execute(self, sql: str) -> None:
        self._connection.executed.append(sql)
        if sql.startswith("SELECT 1 AS test"):
            if self._connection.probe_error:
                raise Exception(self._connection.probe_error)
            self.description = [("test",)]
            self._rows = [(1,)]
            return
        if self._connection.execute_error:
            raise Exception(self._connection.execute_error)
        if self._connection.columns:
            self.description = [(name,) for name in self._connection.columns]
            self._rows = list(self._connection.rows)

    def fetchall(self) -> List[tuple]:
        return list(self._rows)

    def close(self) -> None:
        pass


class FakeConnection:
    """Conexion DB-API en memoria con un resultado fijo."""

    def __init__(
        self,
        columns: Sequence[str] = (),
        rows: Sequence[tuple] = (),
        execute_error: Optional[str] = None,
        probe_error: Optional[str] = None,
    ) -> None:
        self.columns = list(columns)
        self.rows = list(rows)
        self.execute_error = execute_error
        self.probe_error = probe_error
        self.executed: List[str] = []
        self.closed = False
        self.timeout = 0

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """
    Sustituye a pyodbc.connect. `accept` decide que connection strings
    conectan; el resto falla con `error`.
    """

    def __init__(
        self,
        accept: Callable[[str], bool] = lambda cs: True,
        connection_factory: Callable[[], FakeConnection] = FakeConnection,
        error: str = "[08001] Unable to connect to server",
    ) -> None:
        self.accept = accept
        self.connection_factory = connection_factory
        self.error = error
        self.calls: List[str] = []
        self.connections: List[FakeConnection] = []

    def __call__(self, connection_string: str, timeout: float) -> FakeConnection:
        self.calls.append(connection_string)
        if not self.accept(connection_string):
            raise Exception(self.error)
        connection = self.connection_factory()
        self.connections.append(connection)
        return connection


# ----------------------------------------------------------------------
# HTTP falso
# ----------------------------------------------------------------------


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("sin JSON")
        return self._body


class FakeHttpSession:
    """
    Retorna (o lanza) los elementos de `responses` en orden; el ultimo se
    repite cuando se agotan.
    """

    def __init__(self, responses: Sequence[Any]) -> None:
        self._responses = list(responses)
        self.requests: List[dict] = []
        self.closed = False

    def request(self, method: str, url: str, data: bytes, headers: dict, timeout: float) -> FakeResponse:
        self.requests.append({"method": method, "url": url, "data": data, "headers": headers, "timeout": timeout})
        index = min(len(self.requests) - 1, len(self._responses) - 1)
        item = self._responses[index]
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class SleepRecorder:
    """Reemplaza time.sleep registrando las esperas."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture
def session_factory() -> Iterator[Any]:
    """
    Session factory sobre SQLite en memoria.
    Crea las tablas para cada test y las elimina al terminar.
    """
    engine = build_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlAlchemyConfigStore:
    return SqlAlchemyConfigStore(session_factory)


@pytest.fixture
def fake_connection_cls():
    return FakeConnection


@pytest.fixture
def fake_connector_cls():
    return FakeConnector


@pytest.fixture
def fake_response_cls():
    return FakeResponse


@pytest.fixture
def fake_http_session_cls():
    return FakeHttpSession


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
