"""
Tests unitarios para las utilidades compartidas (masking, fechas, auditoria).
"""
from datetime import date, datetime, timezone

from odbc_bridge.shared.utils.audit_logger import TaskAuditLogger
from odbc_bridge.shared.utils.datetime_utils import DateTimeUtils
from odbc_bridge.shared.utils.masking import mask_connection_string, mask_headers, mask_secret


def test_mask_connection_string() -> None:
    assert mask_connection_string("DSN=erp;UID=dba;PWD=sql;") == "DSN=erp;UID=dba;PWD=***;"
    assert mask_connection_string("Password={a;b};Server=x") == "Password=***;Server=x"
    assert mask_connection_string("") == ""


def test_mask_secret_and_headers() -> None:
    assert mask_secret("abc") == "***"
    assert mask_secret("token-12345") == "***2345"
    assert mask_headers({"Authorization": "Bearer token-12345", "X-Tenant": "1"}) == {
        "Authorization": "***2345",
        "X-Tenant": "1",
    }


def test_iso_round_trip_uses_z_suffix() -> None:
    value = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    text = DateTimeUtils.to_iso_string(value)

    assert text == "2024-03-01T10:00:00Z"
    assert DateTimeUtils.from_iso_string(text) == value
    assert DateTimeUtils.from_iso_string("ontem") is None


def test_parse_timestamp_formats() -> None:
    assert DateTimeUtils.parse_timestamp("01/03/2024") == datetime(2024, 3, 1)
    assert DateTimeUtils.parse_timestamp("20240301") == datetime(2024, 3, 1)
    assert DateTimeUtils.parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1)
    assert DateTimeUtils.parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert DateTimeUtils.parse_timestamp("") is None
    assert DateTimeUtils.parse_timestamp(True) is None


def test_task_audit_logger_writes_task_file(tmp_path) -> None:
    """Verifica que cada tarea escribe su propio archivo y que el sink se libera."""
    TaskAuditLogger.shutdown()
    TaskAuditLogger.initialize(str(tmp_path))
    try:
        task_log = TaskAuditLogger.get_task_logger(7, "Sync Clientes!")
        task_log.info("inicio")
        TaskAuditLogger.log_outcome(7, {"success": True, "record_count": 2})

        assert TaskAuditLogger.release_task_logger(7) is True
        content = (tmp_path / "task_7_sync_clientes.log").read_text()
        assert "inicio" in content
        assert '"record_count": 2' in content
        assert TaskAuditLogger.release_task_logger(7) is False
    finally:
        TaskAuditLogger.shutdown()
