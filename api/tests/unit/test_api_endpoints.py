"""
Tests unitarios para los endpoints /api/v1.

Verifica el contrato HTTP:
- CRUD con 201 / 204 / 404 / 400 / 422.
- Las operaciones de UI responden 200 con success/message.
- El estado de sincronizacion incluye el scheduler.
"""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from odbc_bridge.api.v1.dependencies.use_case_deps import get_pipeline_use_cases
from odbc_bridge.application.dto.pipeline_dto import OperationResultDTO
from odbc_bridge.core.config import Settings
from odbc_bridge.core.container import build_container
from odbc_bridge.infrastructure.external.delivery.delivery_client import DeliveryClient


@pytest.fixture
def container(session_factory, fake_connector_cls, fake_connection_cls, fake_http_session_cls, fake_response_cls):
    config = Settings(
        API_URL="https://api.example.com/in",
        API_KEY="",
        CONNECT_TIMEOUT_S=2.0,
        SLOW_CONNECT_TIMEOUT_S=2.0,
        SYNC_INTERVAL_MINUTES=60,
    )
    connector = fake_connector_cls(
        connection_factory=lambda: fake_connection_cls(columns=["ID", "NOME"], rows=[(1, "Ana")])
    )
    http = fake_http_session_cls([fake_response_cls(200, body={"ok": True})])
    built = build_container(
        config,
        session_factory=session_factory,
        connect_fn=connector,
        delivery=DeliveryClient(session=http, sleep=lambda s: None),
    )
    yield built
    built.close(grace_s=0)


@pytest.fixture
def app(container):
    from main import create_application
    application = create_application(container)
    yield application
    application.dependency_overrides.clear()


async def _create_query(client: AsyncClient) -> int:
    response = await client.post(
        "/api/v1/connections/",
        json={"name": "erp", "host": "srv01", "database": "contabil", "username": "dba", "password": "sql"},
    )
    profile_id = response.json()["id"]
    response = await client.post(
        "/api/v1/queries/",
        json={"name": "clientes", "sql": "SELECT ID, NOME FROM clientes", "connection_id": profile_id},
    )
    return response.json()["id"]


@pytest.mark.asyncio
async def test_health(app) -> None:
    """GET /health retorna el estado de la aplicacion."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["scheduler_running"] is False


@pytest.mark.asyncio
async def test_connection_crud(app) -> None:
    """Crear, leer, actualizar y eliminar un perfil sin exponer la password."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        created = await client.post("/api/v1/connections/", json={"name": "erp", "password": "sql"})
        profile_id = created.json()["id"]
        updated = await client.put(f"/api/v1/connections/{profile_id}", json={"host": "srv02"})
        deleted = await client.delete(f"/api/v1/connections/{profile_id}")
        missing = await client.get(f"/api/v1/connections/{profile_id}")

    assert created.status_code == 201
    assert created.json()["has_password"] is True
    assert "password" not in created.json()
    assert updated.json()["host"] == "srv02"
    assert deleted.status_code == 204
    assert missing.status_code == 404
    assert missing.json()["error"] == "ENTITY_NOT_FOUND"


@pytest.mark.asyncio
async def test_invalid_payload_returns_422(app) -> None:
    """Un perfil sin nombre se rechaza con 422."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/connections/", json={"host": "srv01"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_task_with_invalid_cron_returns_400(app) -> None:
    """Una tarea con cron invalido se rechaza con 400 VALIDATION_ERROR."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        query_id = await _create_query(client)
        response = await client.post(
            "/api/v1/tasks/", json={"name": "t", "cron": "a cada hora", "query_id": query_id}
        )

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_task_is_scheduled_and_executed(app, container) -> None:
    """Crear una tarea la programa; ejecutarla ahora entrega los registros."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        query_id = await _create_query(client)
        created = await client.post(
            "/api/v1/tasks/", json={"name": "t", "cron": "*/5 * * * *", "query_id": query_id}
        )
        task_id = created.json()["id"]
        executed = await client.post(f"/api/v1/tasks/{task_id}/execute")
        outcomes = await client.get(f"/api/v1/tasks/{task_id}/outcomes")

    assert created.status_code == 201
    assert created.json()["state"] == "scheduled"
    assert container.scheduler.is_scheduled(task_id)
    assert executed.status_code == 200
    assert executed.json()["success"] is True
    assert executed.json()["data"]["record_count"] == 1
    assert len(outcomes.json()) == 1


@pytest.mark.asyncio
async def test_mapping_with_duplicate_targets_returns_400(app) -> None:
    """Un mapeo con destinos duplicados se rechaza con 400."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        query_id = await _create_query(client)
        response = await client.post(
            "/api/v1/mappings/",
            json={
                "name": "m",
                "query_id": query_id,
                "rules": {"ID": {"target_name": "x"}, "NOME": {"target_name": "x"}},
            },
        )

    assert response.status_code == 400
    assert response.json()["error"] == "TRANSFORMATION_ERROR"


@pytest.mark.asyncio
async def test_run_query(app) -> None:
    """POST /queries/{id}/run retorna las filas de la consulta."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        query_id = await _create_query(client)
        response = await client.post(f"/api/v1/queries/{query_id}/run", json={"parameters": {}})

    assert response.status_code == 200
    assert response.json()["data"]["result"] == [{"ID": 1, "NOME": "Ana"}]


@pytest.mark.asyncio
async def test_sync_status_and_settings(app) -> None:
    """El estado incluye el scheduler y los ajustes enmascaran la api key."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        status_response = await client.get("/api/v1/sync/status")
        settings_response = await client.put(
            "/api/v1/sync/settings", json={"api_key": "chave-secreta-9876", "sync_interval_minutes": 30}
        )

    assert status_response.status_code == 200
    body = status_response.json()
    assert body["up_to_date"] is False
    assert body["interval_minutes"] == 60
    assert body["scheduler"]["running"] is False
    assert settings_response.json()["api_key"] == "***9876"
    assert settings_response.json()["sync_interval_minutes"] == 30


@pytest.mark.asyncio
async def test_test_connection_uses_pipeline_use_cases(app) -> None:
    """POST /connections/test delega en PipelineUseCases y responde 200 aun si falla."""
    mock_use_cases = AsyncMock()
    mock_use_cases.test_connection = AsyncMock(
        return_value=OperationResultDTO(success=False, message="Login failed", data={"kind": "credentials"})
    )
    app.dependency_overrides[get_pipeline_use_cases] = lambda: mock_use_cases
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/v1/connections/test", json={"name": "erp", "host": "srv01"})

    assert response.status_code == 200
    assert response.json()["success"] is False
    dto = mock_use_cases.test_connection.call_args[0][0]
    assert dto.host == "srv01"
