"""
Tests unitarios para config_store_repository.py (SQLite en memoria).
"""
from datetime import datetime, timezone

import pytest

from odbc_bridge.domain.entities import (
    ColumnMapping,
    ConnectionProfile,
    DeliveryOutcome,
    QueryDefinition,
    ScheduledTask,
)
from odbc_bridge.shared.constants.pipeline_constants import DeliveryStatus, HttpMethod, OutputFormat
from odbc_bridge.shared.exceptions.domain import EntityNotFoundException


@pytest.fixture
def profile(store) -> ConnectionProfile:
    return store.save_connection_profile(
        ConnectionProfile(
            name="erp",
            driver="SQL Anywhere 17",
            host="srv01",
            port=2638,
            database="contabil",
            username="dba",
            password="sql",
            extra_params={"CharSet": "UTF-8"},
        )
    )


@pytest.fixture
def query(store, profile) -> QueryDefinition:
    return store.save_query_definition(
        QueryDefinition(name="clientes", sql="SELECT * FROM clientes", connection_id=profile.id)
    )


class TestConnectionProfiles:
    """CRUD de perfiles de conexion."""

    def test_create_and_get(self, store, profile) -> None:
        """Verifica que un perfil guardado se recupera completo."""
        stored = store.get_connection_profile(profile.id)

        assert stored.id is not None
        assert stored.name == "erp"
        assert stored.port == 2638
        assert stored.password == "sql"
        assert stored.extra_params == {"CharSet": "UTF-8"}

    def test_update(self, store, profile) -> None:
        """Verifica que guardar con id actualiza el registro."""
        profile.host = "srv02"

        store.save_connection_profile(profile)

        assert store.get_connection_profile(profile.id).host == "srv02"
        assert len(store.list_connection_profiles()) == 1

    def test_update_missing_id(self, store) -> None:
        """Verifica que actualizar un id inexistente lanza EntityNotFoundException."""
        with pytest.raises(EntityNotFoundException):
            store.save_connection_profile(ConnectionProfile(id=42, name="x"))

    def test_delete(self, store, profile) -> None:
        """Verifica delete y su resultado para ids inexistentes."""
        assert store.delete_connection_profile(profile.id) is True
        assert store.delete_connection_profile(profile.id) is False
        assert store.get_connection_profile(profile.id) is None


class TestQueriesAndMappings:
    """CRUD de consultas y mapeos."""

    def test_query_requires_existing_profile(self, store) -> None:
        """Verifica que una consulta con conexion inexistente se rechaza."""
        with pytest.raises(EntityNotFoundException):
            store.save_query_definition(QueryDefinition(name="q", sql="SELECT 1", connection_id=99))

    def test_query_round_trip(self, store, profile) -> None:
        """Verifica formato de salida y parametros persistidos."""
        saved = store.save_query_definition(
            QueryDefinition(
                name="pedidos",
                sql="SELECT * FROM pedidos WHERE empresa = :empresa",
                connection_id=profile.id,
                output_format="csv",
                parameters={"empresa": 1},
            )
        )

        stored = store.get_query_definition(saved.id)
        assert stored.output_format == OutputFormat.CSV
        assert stored.parameters == {"empresa": 1}

    def test_mapping_requires_existing_query(self, store) -> None:
        """Verifica que un mapeo con consulta inexistente se rechaza."""
        with pytest.raises(EntityNotFoundException):
            store.save_column_mapping(ColumnMapping(name="m", query_id=7))

    def test_latest_mapping_by_query(self, store, query) -> None:
        """Verifica que la busqueda por consulta retorna el mapeo mas reciente."""
        store.save_column_mapping(
            ColumnMapping.from_dict({"name": "v1", "query_id": query.id, "rules": {"NOME": {"target_name": "nome"}}})
        )
        store.save_column_mapping(
            ColumnMapping.from_dict({"name": "v2", "query_id": query.id, "rules": {"NOME": {"target_name": "name"}}})
        )

        mapping = store.get_column_mapping(query_id=query.id)

        assert mapping.name == "v2"
        assert mapping.rules["NOME"].target_name == "name"
        assert len(store.list_column_mappings(query_id=query.id)) == 2

    def test_mapping_rules_round_trip(self, store, query) -> None:
        """Verifica que las reglas se persisten con su tipo y parametros."""
        saved = store.save_column_mapping(
            ColumnMapping.from_dict(
                {
                    "name": "m",
                    "query_id": query.id,
                    "rules": {
                        "NOME": {"targetName": "nome", "transformType": "uppercase"},
                        "ID": {"includeInOutput": False},
                    },
                }
            )
        )

        stored = store.get_column_mapping(mapping_id=saved.id)
        assert stored.rules["NOME"].kind.value == "uppercase"
        assert stored.rules["ID"].include is False

    def test_get_mapping_without_keys(self, store) -> None:
        """Verifica que sin mapping_id ni query_id no hay resultado."""
        assert store.get_column_mapping() is None


class TestScheduledTasks:
    """CRUD de tareas y registro de ejecuciones."""

    def test_create_task(self, store, query) -> None:
        """Verifica la creacion de una tarea con sus campos de entrega."""
        task = store.save_scheduled_task(
            ScheduledTask(
                name="sync",
                cron="*/5 * * * *",
                query_id=query.id,
                http_method="put",
                headers={"X-Tenant": "1"},
                max_retries=2,
            )
        )

        stored = store.get_scheduled_task(task.id)
        assert stored.http_method == HttpMethod.PUT
        assert stored.headers == {"X-Tenant": "1"}
        assert stored.max_retries == 2
        assert stored.last_run_at is None

    def test_task_requires_existing_query(self, store) -> None:
        """Verifica que una tarea con consulta inexistente se rechaza."""
        with pytest.raises(EntityNotFoundException):
            store.save_scheduled_task(ScheduledTask(name="t", cron="* * * * *", query_id=5))

    def test_active_tasks(self, store, query) -> None:
        """Verifica que get_active_scheduled_tasks filtra las inactivas."""
        store.save_scheduled_task(ScheduledTask(name="a", cron="* * * * *", query_id=query.id))
        store.save_scheduled_task(ScheduledTask(name="b", cron="* * * * *", query_id=query.id, active=False))

        assert [t.name for t in store.get_active_scheduled_tasks()] == ["a"]
        assert len(store.list_scheduled_tasks()) == 2

    def test_record_last_run_and_outcomes(self, store, query) -> None:
        """Verifica que last_run_* y el historial de outcomes se registran."""
        task = store.save_scheduled_task(ScheduledTask(name="a", cron="* * * * *", query_id=query.id))
        outcome = DeliveryOutcome(
            task_id=task.id,
            success=False,
            record_count=3,
            status=DeliveryStatus.FATAL,
            status_code=500,
            error_class="http_500",
            retry_count=3,
            message="HTTP 500",
        )

        store.record_last_run(task.id, datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc), outcome)
        store.append_outcome(outcome)

        stored = store.get_scheduled_task(task.id)
        assert stored.last_run_success is False
        assert stored.last_run_message == "HTTP 500"
        outcomes = store.list_outcomes(task.id)
        assert len(outcomes) == 1
        assert outcomes[0].error_class == "http_500"
        assert outcomes[0].retry_count == 3

    def test_save_does_not_touch_last_run(self, store, query) -> None:
        """Verifica que editar la tarea conserva los campos last_run_*."""
        task = store.save_scheduled_task(ScheduledTask(name="a", cron="* * * * *", query_id=query.id))
        ok = DeliveryOutcome(task_id=task.id, success=True, status=DeliveryStatus.SUCCESS, message="ok")
        store.record_last_run(task.id, datetime(2024, 3, 1, tzinfo=timezone.utc), ok)

        task.cron = "0 * * * *"
        store.save_scheduled_task(task)

        assert store.get_scheduled_task(task.id).last_run_success is True

    def test_record_last_run_of_deleted_task(self, store) -> None:
        """Verifica que registrar una tarea eliminada no falla."""
        outcome = DeliveryOutcome(task_id=77, success=True, status=DeliveryStatus.SUCCESS)

        store.record_last_run(77, datetime.now(timezone.utc), outcome)


class TestLogsAndSettings:
    """Logs persistidos y system_settings."""

    def test_logs_filter_and_clear(self, store) -> None:
        """Verifica el filtro por nivel y la limpieza de logs."""
        store.append_log("info", "inicio")
        store.append_log("error", "falla", context={"task_id": 1})

        errors = store.list_logs(level="error")
        assert [entry["message"] for entry in errors] == ["falla"]
        assert errors[0]["context"] == {"task_id": 1}
        assert [entry["message"] for entry in store.list_logs()] == ["falla", "inicio"]
        assert store.clear_logs() == 2
        assert store.list_logs() == []

    def test_settings(self, store) -> None:
        """Verifica get/set de configuraciones con valor por defecto."""
        assert store.get_setting("api_url", "padrao") == "padrao"

        store.set_setting("api_url", "https://a.example.com")
        store.set_setting("api_url", "https://b.example.com")

        assert store.get_setting("api_url") == "https://b.example.com"
        assert store.get_all_settings() == {"api_url": "https://b.example.com"}
