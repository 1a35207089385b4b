"""
Tests unitarios para delivery_client.py.

Verifica reintentos con backoff, clasificacion transitoria/fatal, headers,
envoltorio opcional y la limpieza de timestamps incrustados.
"""
from __future__ import annotations

import json

import requests

from odbc_bridge.domain.entities.delivery_outcome import DeliveryConfig, DeliveryPolicy
from odbc_bridge.infrastructure.external.delivery.delivery_client import (
    DeliveryClient,
    sanitize_payload,
)
from odbc_bridge.shared.constants.pipeline_constants import DeliveryStatus, HttpMethod


URL = "https://api.example.com/ingest"


def _destination(**overrides) -> DeliveryConfig:
    data = {"url": URL, "policy": DeliveryPolicy(max_retries=3, timeout_s=60.0, backoff_base_s=2.0)}
    data.update(overrides)
    return DeliveryConfig(**data)


class TestRetries:
    """Tests de la politica de reintentos."""

    def test_succeeds_after_two_failures(self, fake_http_session_cls, fake_response_cls, sleep_recorder) -> None:
        """Verifica que dos fallas seguidas de un 2xx retornan exito con retry_count=2."""
        session = fake_http_session_cls(
            [fake_response_cls(500, text="boom"), fake_response_cls(502), fake_response_cls(201, body={"ok": True})]
        )
        client = DeliveryClient(session=session, sleep=sleep_recorder)

        outcome = client.deliver([{"a": 1}], _destination())

        assert outcome.success is True
        assert outcome.status == DeliveryStatus.SUCCESS
        assert outcome.retry_count == 2
        assert outcome.status_code == 201
        assert outcome.response_body == {"ok": True}
        assert len(session.requests) == 3
        assert sleep_recorder.calls == [2.0, 4.0]

    def test_gives_up_after_max_retries_plus_one(self, fake_http_session_cls, fake_response_cls, sleep_recorder) -> None:
        """Verifica que un destino que siempre responde 500 recibe max_retries+1 intentos."""
        session = fake_http_session_cls([fake_response_cls(500, text="error")])
        client = DeliveryClient(session=session, sleep=sleep_recorder)

        outcome = client.deliver([{"a": 1}], _destination())

        assert outcome.success is False
        assert outcome.status == DeliveryStatus.FATAL
        assert outcome.status_code == 500
        assert outcome.error_class == "http_500"
        assert outcome.retry_count == 3
        assert len(session.requests) == 4
        assert sleep_recorder.calls == [2.0, 4.0, 8.0]

    def test_zero_retries(self, fake_http_session_cls, fake_response_cls, sleep_recorder) -> None:
        """Verifica que max_retries=0 hace un unico intento sin espera."""
        session = fake_http_session_cls([fake_response_cls(503)])
        client = DeliveryClient(session=session, sleep=sleep_recorder)
        destination = _destination(policy=DeliveryPolicy(max_retries=0))

        outcome = client.deliver([], destination)

        assert outcome.success is False
        assert len(session.requests) == 1
        assert sleep_recorder.calls == []

    def test_first_success_short_circuits(self, fake_http_session_cls, fake_response_cls, sleep_recorder) -> None:
        """Verifica que un 2xx inicial no reintenta."""
        session = fake_http_session_cls([fake_response_cls(204)])
        client = DeliveryClient(session=session, sleep=sleep_recorder)

        outcome = client.deliver([{"a": 1}], _destination())

        assert outcome.success is True
        assert outcome.retry_count == 0
        assert outcome.response_body is None or outcome.response_body == ""
        assert sleep_recorder.calls == []


class TestNetworkFailures:
    """Tests de fallas de transporte."""

    def test_transient_error_is_retried(self, fake_http_session_cls, fake_response_cls, sleep_recorder) -> None:
        """Verifica que un ConnectionError se reintenta."""
        session = fake_http_session_cls(
            [requests.exceptions.ConnectionError("Connection reset by peer"), fake_response_cls(200)]
        )
        client = DeliveryClient(session=session, sleep=sleep_recorder)

        outcome = client.deliver([{"a": 1}], _destination())

        assert outcome.success is True
        assert outcome.retry_count == 1

    def test_persistent_network_failure_is_transient(self, fake_http_session_cls, sleep_recorder) -> None:
        """Verifica que agotar reintentos por red se reporta como transitorio."""
        session = fake_http_session_cls([requests.exceptions.Timeout("read timed out")])
        client = DeliveryClient(session=session, sleep=sleep_recorder)

        outcome = client.deliver([{"a": 1}], _destination())

        assert outcome.success is False
        assert outcome.status == DeliveryStatus.TRANSIENT
        assert outcome.error_class == "network"
        assert len(session.requests) == 4

    def test_invalid_url_is_not_retried(self, fake_http_session_cls, sleep_recorder) -> None:
        """Verifica que un error no transitorio falla en el primer intento."""
        session = fake_http_session_cls([requests.exceptions.InvalidURL("Invalid URL 'x'")])
        client = DeliveryClient(session=session, sleep=sleep_recorder)

        outcome = client.deliver([{"a": 1}], _destination(url="x"))

        assert outcome.success is False
        assert outcome.status == DeliveryStatus.FATAL
        assert len(session.requests) == 1
        assert sleep_recorder.calls == []


class TestRequestShape:
    """Tests del request enviado."""

    def test_headers_and_bearer(self, fake_http_session_cls, fake_response_cls) -> None:
        """Verifica Content-Type, Bearer y headers de la tarea."""
        session = fake_http_session_cls([fake_response_cls(200)])
        client = DeliveryClient(session=session, sleep=lambda s: None)
        destination = _destination(api_key="k-123", headers=(("X-Tenant", "42"),), method=HttpMethod.PUT)

        client.deliver([{"a": 1}], destination)

        request = session.requests[0]
        assert request["method"] == "PUT"
        assert request["url"] == URL
        assert request["timeout"] == 60.0
        assert request["headers"]["Content-Type"] == "application/json"
        assert request["headers"]["Authorization"] == "Bearer k-123"
        assert request["headers"]["X-Tenant"] == "42"

    def test_without_api_key_has_no_authorization(self, fake_http_session_cls, fake_response_cls) -> None:
        """Verifica que sin api key no se envia Authorization."""
        session = fake_http_session_cls([fake_response_cls(200)])

        DeliveryClient(session=session).deliver([{"a": 1}], _destination())

        assert "Authorization" not in session.requests[0]["headers"]

    def test_payload_is_json_without_embedded_timestamps(self, fake_http_session_cls, fake_response_cls) -> None:
        """Verifica que los timestamps incrustados en textos se eliminan."""
        session = fake_http_session_cls([fake_response_cls(200)])
        payload = [{"obs": "Gerado em 2024-03-01T10:00:00.123Z por job", "qtd": 3}]

        DeliveryClient(session=session).deliver(payload, _destination())

        body = json.loads(session.requests[0]["data"])
        assert body == [{"obs": "Gerado em  por job", "qtd": 3}]

    def test_envelope(self, fake_http_session_cls, fake_response_cls) -> None:
        """Verifica el envoltorio {source, timestamp, data}."""
        session = fake_http_session_cls([fake_response_cls(200)])

        DeliveryClient(session=session).deliver([{"a": 1}], _destination(wrap_payload=True), source="clientes")

        body = json.loads(session.requests[0]["data"])
        assert body["source"] == "clientes"
        assert body["data"] == [{"a": 1}]
        assert body["timestamp"].endswith("Z")

    def test_record_count(self, fake_http_session_cls, fake_response_cls) -> None:
        """Verifica que el outcome registra la cantidad de registros."""
        session = fake_http_session_cls([fake_response_cls(200)])

        outcome = DeliveryClient(session=session).deliver([{"a": 1}, {"a": 2}], _destination())

        assert outcome.record_count == 2


class TestSanitizePayload:
    """Tests para sanitize_payload()."""

    def test_nested_structures(self) -> None:
        """Verifica la limpieza recursiva en dicts y listas."""
        data = {"a": ["x 2024-01-01T00:00:00+03:00"], "b": {"c": "obs 2024-01-01T00:00:00 fim"}, "n": 1}

        assert sanitize_payload(data) == {"a": ["x "], "b": {"c": "obs  fim"}, "n": 1}

    def test_whole_timestamp_is_kept(self) -> None:
        """Verifica que un campo que es solo un timestamp no se vacia."""
        assert sanitize_payload("2024-01-05T10:30:00Z") == "2024-01-05T10:30:00Z"
        assert sanitize_payload({"created": "2024-01-05T10:30:00"}) == {"created": "2024-01-05T10:30:00"}

    def test_plain_dates_are_kept(self) -> None:
        """Verifica que una fecha sin hora no se considera timestamp."""
        assert sanitize_payload("2024-01-01") == "2024-01-01"


def test_backoff_is_exponential() -> None:
    """Verifica que la espera es base^intento."""
    policy = DeliveryPolicy(backoff_base_s=2.0)

    assert [policy.backoff_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]
