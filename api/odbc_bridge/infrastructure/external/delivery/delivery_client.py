"""
Cliente HTTP de entrega de datos transformados.

Requisitos cubiertos:
- requests (Session reutilizable)
- JSON con Content-Type application/json, Bearer opcional y headers de la tarea
- timeout fijo por request (60s por defecto)
- reintentos ante non-2xx y fallas de red transitorias con backoff 2^intento
- limpieza de timestamps ISO incrustados en campos de texto
"""

from __future__ import annotations

import json
import re
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import requests
from loguru import logger

from odbc_bridge.domain.entities.delivery_outcome import DeliveryConfig, DeliveryOutcome, DeliveryPolicy
from odbc_bridge.shared.constants.pipeline_constants import DeliveryStatus
from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils
from odbc_bridge.shared.utils.masking import mask_headers


TIMESTAMP_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})?")

# ECONNRESET / ETIMEDOUT / ECONNABORTED / EHOSTUNREACH en requests
TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


def sanitize_payload(data: Any) -> Any:
    """
    Elimina substrings con forma de timestamp ISO incrustados en textos (recursivo).

    Un texto que es exactamente un timestamp (salida de la transformacion
    `date`) se conserva.
    """
    if isinstance(data, str):
        if TIMESTAMP_PATTERN.fullmatch(data.strip()):
            return data
        return TIMESTAMP_PATTERN.sub("", data)
    if isinstance(data, dict):
        return {key: sanitize_payload(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [sanitize_payload(item) for item in data]
    return data


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return DateTimeUtils.to_iso_string(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def serialize_payload(data: Any) -> bytes:
    return json.dumps(data, default=_json_default, ensure_ascii=False).encode("utf-8")


def build_envelope(data: Any, source: str) -> Dict[str, Any]:
    """Envoltorio opcional {source, timestamp, data}."""
    return {
        "source": source,
        "timestamp": DateTimeUtils.to_iso_string(DateTimeUtils.now_utc()),
        "data": data,
    }


def _parse_body(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class DeliveryClient:
    """
    Entrega payloads a un endpoint HTTP con reintentos.

    El sleep es inyectable: bloquea solo el thread del disparo que reintenta.
    """

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self._sleep = sleep

    @staticmethod
    def build_headers(destination: DeliveryConfig) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if destination.api_key:
            headers["Authorization"] = f"Bearer {destination.api_key}"
        headers.update(destination.header_dict())
        return headers

    def deliver(
        self,
        payload: Any,
        destination: DeliveryConfig,
        policy: Optional[DeliveryPolicy] = None,
        *,
        source: str = "",
    ) -> DeliveryOutcome:
        """
        Envia el payload y retorna el DeliveryOutcome.

        Total de intentos = policy.max_retries + 1. Cualquier 2xx corta los
        reintentos. La falla del ultimo intento se reporta en el outcome.
        """
        policy = policy or destination.policy
        data = sanitize_payload(payload)
        if destination.wrap_payload:
            data = build_envelope(data, source)
        body = serialize_payload(data)
        headers = self.build_headers(destination)
        method = destination.method.value
        total_attempts = max(0, policy.max_retries) + 1
        record_count = len(payload) if isinstance(payload, list) else 1

        logger.debug(f"[Delivery] {method} {destination.url} headers={mask_headers(headers)}")

        last_status: Optional[int] = None
        last_message = ""
        for attempt in range(1, total_attempts + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=destination.url,
                    data=body,
                    headers=headers,
                    timeout=policy.timeout_s,
                )
            except TRANSIENT_ERRORS as e:
                last_status = None
                last_message = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"[Delivery] Tentativa {attempt}/{total_attempts} fallo por red: {last_message}"
                )
                if attempt < total_attempts:
                    self._backoff(policy, attempt)
                    continue
                return DeliveryOutcome(
                    task_id=None,
                    success=False,
                    record_count=record_count,
                    status=DeliveryStatus.TRANSIENT,
                    error_class="network",
                    retry_count=attempt - 1,
                    message=f"Falla de red tras {attempt} tentativas: {last_message}",
                )
            except requests.exceptions.RequestException as e:
                # URL invalida, esquema ausente, headers invalidos: no se reintenta
                logger.error(f"[Delivery] Error no recuperable: {type(e).__name__}: {e}")
                return DeliveryOutcome(
                    task_id=None,
                    success=False,
                    record_count=record_count,
                    status=DeliveryStatus.FATAL,
                    error_class=type(e).__name__,
                    retry_count=attempt - 1,
                    message=str(e),
                )

            if 200 <= resp.status_code < 300:
                logger.success(
                    f"[Delivery] {method} {destination.url} -> {resp.status_code} "
                    f"(tentativa {attempt}/{total_attempts}, {record_count} registros)"
                )
                return DeliveryOutcome(
                    task_id=None,
                    success=True,
                    record_count=record_count,
                    status=DeliveryStatus.SUCCESS,
                    status_code=resp.status_code,
                    retry_count=attempt - 1,
                    message=f"Entregado con status {resp.status_code}",
                    response_body=_parse_body(resp),
                )

            last_status = resp.status_code
            last_message = resp.text[:500] if resp.text else ""
            logger.warning(
                f"[Delivery] Tentativa {attempt}/{total_attempts}: status {resp.status_code}"
            )
            if attempt < total_attempts:
                self._backoff(policy, attempt)

        logger.error(
            f"[Delivery] Desistiendo tras {total_attempts} tentativas: status {last_status}"
        )
        return DeliveryOutcome(
            task_id=None,
            success=False,
            record_count=record_count,
            status=DeliveryStatus.FATAL,
            status_code=last_status,
            error_class=f"http_{last_status}",
            retry_count=total_attempts - 1,
            message=f"API respondio {last_status} tras {total_attempts} tentativas: {last_message}",
        )

    def _backoff(self, policy: DeliveryPolicy, attempt: int) -> None:
        wait_s = policy.backoff_for(attempt)
        logger.info(f"[Delivery] Reintentando en {wait_s:g}s...")
        self._sleep(wait_s)

    def close(self) -> None:
        self._session.close()
