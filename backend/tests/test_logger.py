"""
Тесты журналирования: форматтер, handler system_logs и middleware
"""
import json
import logging
import sys
from fastapi.testclient import TestClient
from fleetguard.logger import DatabaseLogHandler, JSONFormatter, extract_extra


def _record(msg="Проверка", level=logging.WARNING, module_name="scheduler_service", exc_info=None, **extra):
    record = logging.LogRecord(
        "fleetguard", level, f"/app/{module_name}.py", 42, msg, (), exc_info, func="run"
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredLogging:
    """Тесты JSONFormatter и DatabaseLogHandler"""

    def test_extract_extra(self):
        record = _record(plan_id=3, event_category="challan_sync")
        assert extract_extra(record) == {"plan_id": 3, "event_category": "challan_sync"}

    def test_json_formatter_includes_extra(self):
        payload = json.loads(JSONFormatter().format(_record(company_id=7)))

        assert payload["level"] == "WARNING"
        assert payload["message"] == "Проверка"
        assert payload["company_id"] == 7
        assert "exception" not in payload

    def test_entry_event_type_from_module(self):
        entry = DatabaseLogHandler().build_entry(_record(plan_id=3))

        assert entry.event_type == "scheduler"
        assert entry.event_category == "general"
        assert json.loads(entry.extra_data) == {"plan_id": 3}
        assert entry.exception_type is None

    def test_entry_explicit_event_fields(self):
        entry = DatabaseLogHandler().build_entry(
            _record(module_name="main", event_type="external_api", event_category="challan_sync")
        )

        assert entry.event_type == "external_api"
        assert entry.event_category == "challan_sync"
        assert entry.extra_data is None

    def test_entry_exception_fields(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            entry = DatabaseLogHandler().build_entry(_record(level=logging.ERROR, exc_info=sys.exc_info()))

        assert entry.exception_type == "ValueError"
        assert entry.exception_message == "bad payload"
        assert "bad payload" in entry.stack_trace


class TestLoggingMiddleware:
    """Тесты заголовков, добавляемых LoggingMiddleware"""

    def test_headers_added(self, client: TestClient):
        response = client.get("/health/live")

        assert "X-Process-Time" in response.headers
        assert response.headers["X-Request-ID"]

    def test_request_id_passed_through(self, client: TestClient):
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
