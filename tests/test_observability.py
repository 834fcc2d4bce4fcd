"""Tests for observability."""

from __future__ import annotations

import json
import logging

from pwsh_mcp.config import ObservabilityConfig
from pwsh_mcp.observability import (
    JsonLogFormatter,
    MetricsCollector,
    ObservabilityContext,
    generate_correlation_id,
    setup_logging,
)


def make_record(msg: str = "Hello world") -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0, msg=msg, args=(), exc_info=None
    )


def test_correlation_ids_are_short_and_unique():
    ids = {generate_correlation_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(cid) == 8 for cid in ids)


def test_json_formatter_basic():
    data = json.loads(JsonLogFormatter().format(make_record()))
    assert data["level"] == "info"
    assert data["logger"] == "test"
    assert data["msg"] == "Hello world"
    assert "ts" in data


def test_json_formatter_extras():
    record = make_record()
    record.correlation_id = "abc12345"
    record.tool = "execute_ps"
    record.status = "error"
    record.error = "Error executing PowerShell command: boom"
    data = json.loads(JsonLogFormatter(include_correlation_id=True).format(record))
    assert data["cid"] == "abc12345"
    assert data["tool"] == "execute_ps"
    assert data["status"] == "error"
    assert data["error"] == "Error executing PowerShell command: boom"

    data = json.loads(JsonLogFormatter(include_correlation_id=False).format(record))
    assert "cid" not in data


def test_metrics_collector():
    metrics = MetricsCollector()
    metrics.record_call("execute_ps", 10.0, True)
    metrics.record_call("execute_ps", 30.0, False)
    metrics.record_call("list_modules", 5.0, True)
    stats = metrics.get_stats()
    assert stats["total_requests"] == 3
    assert stats["total_errors"] == 1
    assert stats["tools"]["execute_ps"] == {
        "calls": 2,
        "errors": 1,
        "avg_ms": 20.0,
        "min_ms": 10.0,
        "max_ms": 30.0,
    }
    metrics.reset()
    assert metrics.get_stats()["total_requests"] == 0


def test_context_records_only_when_enabled():
    disabled = ObservabilityContext(ObservabilityConfig(enabled=False))
    disabled.record("cid", "execute_ps", 1.0, True)
    assert disabled.get_stats()["total_requests"] == 0

    enabled = ObservabilityContext(ObservabilityConfig(enabled=True))
    enabled.record(enabled.correlation_id(), "execute_ps", 1.0, True)
    assert enabled.get_stats()["total_requests"] == 1


def test_setup_logging_json():
    logger = setup_logging(ObservabilityConfig(log_format="json", log_level="debug"), "pwsh-mcp-test")
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonLogFormatter)


def test_setup_logging_text_replaces_handlers():
    setup_logging(ObservabilityConfig(log_format="json"), "pwsh-mcp-test2")
    logger = setup_logging(ObservabilityConfig(log_format="text"), "pwsh-mcp-test2")
    assert len(logger.handlers) == 1
    assert not isinstance(logger.handlers[0].formatter, JsonLogFormatter)
