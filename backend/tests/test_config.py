"""
Tests for settings and logging configuration
"""
import json
import logging

import pytest
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.registry import REGISTRY
from pydantic import ValidationError

from app.core.config import PROJECT_ROOT, Settings
from app.core.logging_config import ContextualFormatter, LoggingConfig, SensitiveDataFilter
from app.core.metrics import build_registry


def test_defaults_match_reference_bounds(monkeypatch):
    for name in ("QUERY_TIMEOUT_MS", "MAX_OUTPUT_BYTES", "API_PORT", "JQLITE_PATH", "JQLITE_VIZ_PATH"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.query_timeout_ms == 5000
    assert settings.max_output_bytes == 10 * 1024 * 1024
    assert settings.output_limit_policy == "error"
    assert settings.api_port == 3000
    assert settings.jqlite_path == str(PROJECT_ROOT / "jqlite.exe")
    assert settings.jqlite_viz_path == str(PROJECT_ROOT / "jqlite_viz.exe")


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("API_PORT", "8080")
    monkeypatch.setenv("JQLITE_PATH", "/opt/jqlite/bin/jqlite")
    monkeypatch.setenv("OUTPUT_LIMIT_POLICY", "truncate")
    monkeypatch.setenv("TEMP_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.api_port == 8080
    assert settings.jqlite_path == "/opt/jqlite/bin/jqlite"
    assert settings.output_limit_policy == "truncate"
    assert settings.resolved_temp_dir == tmp_path
    assert settings.log_level == "DEBUG"


def test_invalid_policy_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, output_limit_policy="drop")


def test_allowed_origins_list():
    settings = Settings(_env_file=None, allowed_origins="http://a.test, http://b.test,")

    assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]


def _record(msg, *args):
    return logging.LogRecord("app.test", logging.INFO, __file__, 1, msg, args, None)


def test_sensitive_data_filter_masks_tokens():
    record = _record("calling engine with token=abc123 and %s", "Bearer xyz")

    SensitiveDataFilter(enabled=True).filter(record)

    message = record.getMessage()
    assert "abc123" not in message
    assert "xyz" not in message


def test_sensitive_data_filter_disabled():
    record = _record("token=abc123")

    SensitiveDataFilter(enabled=False).filter(record)

    assert record.getMessage() == "token=abc123"


def test_contextual_formatter_includes_request_context():
    LoggingConfig.set_context(request_id="req-1")
    try:
        record = _record("Engine invocation finished")
        record.engine = "jqlite"
        payload = json.loads(ContextualFormatter().format(record))
    finally:
        LoggingConfig.clear_context()

    assert payload["message"] == "Engine invocation finished"
    assert payload["request_id"] == "req-1"
    assert payload["engine"] == "jqlite"
    assert payload["level"] == "INFO"


def test_logging_api_round_trip(make_client):
    client = make_client()

    response = client.put("/api/logging/levels/app.services", json={"level": "debug"})
    assert response.status_code == 200
    assert response.json() == {"module": "app.services", "level": "DEBUG"}

    assert client.get("/api/logging/levels/app.services").json()["level"] == "DEBUG"
    assert "app.services" in client.get("/api/logging/levels").json()

    assert client.put("/api/logging/levels/app", json={"level": "LOUD"}).status_code == 400

    client.put("/api/logging/levels/app.services", json={"level": "INFO"})


def test_logging_metrics_reset(make_client):
    client = make_client()

    assert client.post("/api/logging/metrics/reset").status_code == 200
    body = client.get("/api/logging/metrics").json()
    assert set(body["metrics"]) == {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    assert body["total"] == sum(body["metrics"].values())


def test_metrics_registry_default(monkeypatch):
    monkeypatch.delenv("PROMETHEUS_MULTIPROC_DIR", raising=False)

    assert build_registry() is REGISTRY


def test_metrics_registry_multiprocess(monkeypatch, tmp_path):
    monkeypatch.setenv("PROMETHEUS_MULTIPROC_DIR", str(tmp_path))

    registry = build_registry()

    assert isinstance(registry, CollectorRegistry)
    assert registry is not REGISTRY
    assert generate_latest(registry) == b""
