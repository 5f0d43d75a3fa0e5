import logging
from decimal import Decimal

import structlog
from fastapi.testclient import TestClient

from sessionguard.config import Settings
from sessionguard.logging_config import build_processors, decimals_to_float, setup_logging
from sessionguard.main import app

client = TestClient(app)


def test_decimals_render_as_numbers():
    event = decimals_to_float(None, "info", {"event": "sweep_started", "stranded_sol": Decimal("0.25")})
    assert event["stranded_sol"] == 0.25


def test_json_pipeline_formats_exceptions():
    assert structlog.processors.format_exc_info in build_processors(json_logs=True)
    assert structlog.processors.format_exc_info not in build_processors(json_logs=False)


def test_setup_logging_sets_level():
    setup_logging("WARNING", "json")
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
    setup_logging("INFO", "console")
    assert logging.getLogger().level == logging.INFO


def test_log_format_is_validated(monkeypatch):
    monkeypatch.setenv("LOG_FORMAT", "json")
    assert Settings().log_format == "json"


def test_request_id_is_echoed():
    response = client.get("/", headers={"x-request-id": "req-42"})
    assert response.headers["x-request-id"] == "req-42"


def test_request_id_is_generated():
    response = client.get("/")
    assert len(response.headers["x-request-id"]) == 8
