import json
import logging

from semantic_docs.logging_utils import (
    clear_request_context,
    get_request_context,
    log_failure,
    log_stage,
    redact_query,
    set_request_context,
)


def test_redacts_contact_details():
    shown, redacted = redact_query("email me at jane@example.com")
    assert redacted is True
    assert shown.startswith("[REDACTED]")


def test_truncates_long_queries():
    shown, redacted = redact_query("q" * 300)
    assert redacted is False
    assert len(shown) == 201


def test_log_stage_writes_json(caplog):
    caplog.set_level(logging.INFO, logger="uvicorn.error")
    set_request_context("req-1", "deploy", 5)
    try:
        log_stage("search", [{"score": 0.9}, {"score": 0.4}], duration_ms=12.5)
    finally:
        clear_request_context()

    entry = json.loads(caplog.records[-1].getMessage())
    assert entry["request_id"] == "req-1"
    assert entry["count"] == 2
    assert entry["top_scores"] == [0.9, 0.4]
    assert entry["duration_ms"] == 12.5
    assert get_request_context() == {}


def test_log_failure_is_error_with_category(caplog):
    caplog.set_level(logging.INFO, logger="uvicorn.error")
    log_failure("config", "AI_SEARCH_INDEX environment variable is not set", missing="AI_SEARCH_INDEX")

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    entry = json.loads(record.getMessage())
    assert entry["category"] == "config"
    assert entry["missing"] == "AI_SEARCH_INDEX"
