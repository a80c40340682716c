"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from squatboard.core.logging import JsonFormatter, PrettyFormatter, latency_bucket_ms, log_event
from squatboard.main import app


def test_request_id_in_response_and_logs(caplog):
    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="squatboard"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"


def test_completion_logs_carry_user_and_event(caplog):
    client = TestClient(app)
    client.post("/api/users", json={"userId": "u1", "username": "Alice"})
    with caplog.at_level(logging.INFO, logger="squatboard"):
        client.post("/api/completions", json={"userId": "u1"}, headers={"X-Request-Id": "rid-log"})
    records = [r for r in caplog.records if r.getMessage() == "completion.recorded"]
    assert records
    assert records[0].user_id == "u1"
    assert records[0].request_id == "rid-log"


def test_log_event_truncates_extra(caplog):
    with caplog.at_level(logging.INFO, logger="squatboard"):
        log_event("info", "big.payload", extra={"blob": "x" * 2000})
    record = [r for r in caplog.records if r.getMessage() == "big.payload"][0]
    assert record.blob.endswith("...<truncated>")
    assert len(record.blob) < 600


def test_json_formatter_fields():
    record = logging.LogRecord("squatboard", logging.WARNING, __file__, 1, "user.registered", None, None)
    record.request_id = "rid-1"
    record.user_id = "u1"
    record.event_type = "user.registered"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["request_id"] == "rid-1"
    assert payload["user_id"] == "u1"
    assert payload["event_type"] == "user.registered"
    assert "error_code" not in payload


def test_pretty_formatter_tags_user():
    record = logging.LogRecord("squatboard", logging.INFO, __file__, 1, "hello", None, None)
    record.request_id = "rid-2"
    record.user_id = "u9"
    line = PrettyFormatter().format(record)
    assert "[squatboard] [rid=rid-2] [user=u9] hello" in line


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(5000) == ">=1000ms"


def test_json_formatter_includes_event_extras():
    record = logging.LogRecord("squatboard", logging.INFO, __file__, 1, "completion.recorded", None, None)
    record.request_id = None
    record.day = "2024-01-05"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["day"] == "2024-01-05"
    assert "user_id" not in payload


def test_pretty_formatter_appends_extras():
    record = logging.LogRecord("squatboard", logging.INFO, __file__, 1, "users.swept", None, None)
    record.removed = "2"
    assert PrettyFormatter().format(record).endswith("users.swept | removed=2")


def test_log_event_level_names_and_reserved_keys(caplog):
    with caplog.at_level(logging.DEBUG, logger="squatboard"):
        log_event("warning", "lvl.warn", extra={"name": "clash"})
        log_event("nonsense", "lvl.unknown")
    by_msg = {r.getMessage(): r for r in caplog.records}
    assert by_msg["lvl.warn"].levelno == logging.WARNING
    assert by_msg["lvl.warn"].x_name == "clash"
    assert by_msg["lvl.unknown"].levelno == logging.INFO


def test_configure_logging_level():
    from squatboard.core.logging import configure_logging

    configure_logging("development", "debug")
    assert logging.getLogger("squatboard").level == logging.DEBUG
    configure_logging("development", "INFO")
    assert logging.getLogger("squatboard").level == logging.INFO
