"""
Tests unitarios para pipeline_use_cases.py.

Las operaciones de UI retornan siempre OperationResultDTO; las fallas de
conexion, consulta o timeout llegan como success=False con mensaje.
"""
import time

import pytest

from odbc_bridge.application.dto.pipeline_dto import ConnectionProfileCreateDTO, MappingPreviewRequestDTO
from odbc_bridge.application.services.sync_service import SyncService
from odbc_bridge.application.services.transformation_engine import TransformationEngine
from odbc_bridge.application.use_cases.pipeline_use_cases import PipelineUseCases
from odbc_bridge.core.config import Settings
from odbc_bridge.domain.entities import ConnectionProfile, QueryDefinition, ScheduledTask
from odbc_bridge.infrastructure.external.delivery.delivery_client import DeliveryClient
from odbc_bridge.infrastructure.odbc.connection_resolver import ConnectionResolver
from odbc_bridge.infrastructure.odbc.query_executor import QueryExecutor


def _config(**overrides) -> Settings:
    values = {
        "API_URL": "",
        "API_KEY": "",
        "UI_TEST_CONNECTION_TIMEOUT_S": 5.0,
        "UI_RUN_QUERY_TIMEOUT_S": 5.0,
        "UI_EXECUTE_TASK_TIMEOUT_S": 5.0,
    }
    values.update(overrides)
    return Settings(**values)


def _build(store, connector, http, config: Settings):
    resolver = ConnectionResolver(
        connector,
        default_driver="SQL Anywhere 17",
        connect_timeout_s=2.0,
        slow_connect_timeout_s=2.0,
        slow_drivers=[],
        lock_timeout_s=5.0,
        max_workers=2,
    )
    engine = TransformationEngine()
    service = SyncService(
        store,
        resolver,
        QueryExecutor(config.top_dialect_drivers),
        engine,
        DeliveryClient(session=http, sleep=lambda s: None),
        config=config,
    )
    return PipelineUseCases(store, resolver, engine, service, config=config), resolver


@pytest.fixture
def connector(fake_connector_cls, fake_connection_cls):
    return fake_connector_cls(
        connection_factory=lambda: fake_connection_cls(
            columns=["ID", "NOME"], rows=[(1, "Ana"), (2, "Bruno"), (3, "Carla")]
        )
    )


@pytest.fixture
def http(fake_http_session_cls, fake_response_cls):
    return fake_http_session_cls([fake_response_cls(200, body={"ok": True})])


@pytest.fixture
def use_cases(store, connector, http):
    built, resolver = _build(store, connector, http, _config())
    yield built
    resolver.shutdown()


@pytest.fixture
def query(store) -> QueryDefinition:
    profile = store.save_connection_profile(
        ConnectionProfile(name="erp", host="srv01", database="contabil", username="dba", password="sql")
    )
    return store.save_query_definition(
        QueryDefinition(name="clientes", sql="SELECT ID, NOME FROM clientes", connection_id=profile.id)
    )


class TestTestConnection:
    """Tests de test_connection()."""

    @pytest.mark.asyncio
    async def test_success_reports_strategy(self, use_cases, connector) -> None:
        """Verifica que una conexion exitosa reporta estrategia y string enmascarada."""
        dto = ConnectionProfileCreateDTO(name="erp", host="srv01", database="contabil", username="dba", password="sql")

        result = await use_cases.test_connection(dto)

        assert result.success is True
        assert result.data["strategy"]
        assert "PWD=sql" not in result.data["connection_string"]
        assert connector.connections[0].closed is True

    @pytest.mark.asyncio
    async def test_failure_reports_kind_and_attempts(self, store, fake_connector_cls, http) -> None:
        """Verifica que una falla retorna el tipo, la sugerencia y los intentos."""
        connector = fake_connector_cls(
            accept=lambda cs: False, error="[28000] Login failed for user 'dba'"
        )
        use_cases, resolver = _build(store, connector, http, _config())
        dto = ConnectionProfileCreateDTO(name="erp", host="srv01", database="contabil", username="dba", password="sql")

        result = await use_cases.test_connection(dto)

        assert result.success is False
        assert result.data["kind"] == "credentials"
        assert result.data["suggestion"]
        assert result.data["attempts"]
        assert all("PWD=sql" not in attempt for attempt in result.data["attempts"])
        resolver.shutdown()

    @pytest.mark.asyncio
    async def test_saved_connection_not_found(self, use_cases) -> None:
        """Verifica el mensaje cuando el perfil no existe."""
        result = await use_cases.test_saved_connection(404)

        assert result.success is False
        assert "no encontrado" in result.message

    @pytest.mark.asyncio
    async def test_connection_timeout(self, store, fake_connector_cls, fake_connection_cls, http) -> None:
        """Verifica que una prueba lenta retorna el mensaje de timeout."""

        def slow_connection():
            time.sleep(0.5)
            return fake_connection_cls()

        connector = fake_connector_cls(connection_factory=slow_connection)
        use_cases, resolver = _build(store, connector, http, _config(UI_TEST_CONNECTION_TIMEOUT_S=0.05))
        dto = ConnectionProfileCreateDTO(name="erp", host="srv01", database="contabil")

        result = await use_cases.test_connection(dto)

        assert result.success is False
        assert "Tiempo de espera agotado" in result.message
        resolver.shutdown()


class TestRunQueryNow:
    """Tests de run_query_now() y preview_mapping()."""

    @pytest.mark.asyncio
    async def test_returns_rows(self, use_cases, query) -> None:
        """Verifica columnas, cantidad y filas de la consulta."""
        result = await use_cases.run_query_now(query.id)

        assert result.success is True
        assert result.data["columns"] == ["ID", "NOME"]
        assert result.data["record_count"] == 3
        assert result.data["result"][0] == {"ID": 1, "NOME": "Ana"}

    @pytest.mark.asyncio
    async def test_missing_query(self, use_cases) -> None:
        """Verifica el mensaje cuando la consulta no existe."""
        result = await use_cases.run_query_now(999)

        assert result.success is False
        assert "QueryDefinition" in result.message

    @pytest.mark.asyncio
    async def test_query_error_is_returned(self, store, fake_connector_cls, fake_connection_cls, http, query) -> None:
        """Verifica que un error del driver llega clasificado en data."""
        connector = fake_connector_cls(
            connection_factory=lambda: fake_connection_cls(execute_error="Column 'NOME' not found")
        )
        use_cases, resolver = _build(store, connector, http, _config())

        result = await use_cases.run_query_now(query.id)

        assert result.success is False
        assert result.data["kind"] == "unknown_column"
        resolver.shutdown()

    @pytest.mark.asyncio
    async def test_preview_mapping(self, use_cases, query) -> None:
        """Verifica que la vista previa transforma sin guardar el mapeo."""
        dto = MappingPreviewRequestDTO(
            rules={"NOME": {"target_name": "nome", "kind": "uppercase"}, "ID": {"include": False}},
            limit=2,
        )

        result = await use_cases.preview_mapping(query.id, dto)

        assert result.success is True
        assert result.data["transformed"] == [{"nome": "ANA"}, {"nome": "BRUNO"}]
        assert len(result.data["original"]) == 2
        assert use_cases.store.list_column_mappings() == []

    @pytest.mark.asyncio
    async def test_preview_rejects_invalid_rules(self, use_cases, query) -> None:
        """Verifica que reglas con destinos duplicados se rechazan antes de consultar."""
        dto = MappingPreviewRequestDTO(
            rules={"ID": {"target_name": "x"}, "NOME": {"target_name": "x"}},
        )

        result = await use_cases.preview_mapping(query.id, dto)

        assert result.success is False
        assert result.data["errors"]


class TestExecuteTaskNow:
    """Tests de execute_task_now() y run_sync_now()."""

    @pytest.mark.asyncio
    async def test_execute_task(self, use_cases, store, query, http) -> None:
        """Verifica que la tarea se ejecuta y retorna su outcome."""
        task = store.save_scheduled_task(
            ScheduledTask(
                name="sync", cron="*/5 * * * *", query_id=query.id, destination_url="https://api.example.com/in"
            )
        )

        result = await use_cases.execute_task_now(task.id)

        assert result.success is True
        assert result.data["record_count"] == 3
        assert len(http.requests) == 1

    @pytest.mark.asyncio
    async def test_execute_missing_task(self, use_cases) -> None:
        """Verifica el mensaje de tarea inexistente."""
        result = await use_cases.execute_task_now(12)

        assert result.success is False
        assert "ScheduledTask" in result.message

    @pytest.mark.asyncio
    async def test_run_sync_now_without_tasks(self, use_cases) -> None:
        """Verifica una sincronizacion completa sin tareas activas."""
        result = await use_cases.run_sync_now()

        assert result.success is True
        assert result.data["total_tasks"] == 0
