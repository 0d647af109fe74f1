"""Tests for redaction and request correlation in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from grc_records.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def captured():
    logger = logging.getLogger("test_grc_logging")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    yield logger, stream
    logger.handlers.clear()
    clear_request_id()


def test_connection_strings_and_keys_are_redacted(captured) -> None:
    logger, stream = captured

    logger.info(
        "store.connecting",
        extra={
            "mongodb_uri": "mongodb://admin:s3cret@db:27017",
            "api_key": "sk-secret-123",
            "database": "cycorgi",
        },
    )

    output = stream.getvalue()
    assert "s3cret" not in output
    assert "sk-secret-123" not in output
    assert "cycorgi" in output


def test_nested_headers_are_redacted(captured) -> None:
    logger, stream = captured

    logger.info("outbound", extra={"headers": {"X-API-Key": "secret-key", "User-Agent": "pytest"}})

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "pytest" in output


def test_json_line_carries_event_fields_and_request_id(captured) -> None:
    logger, stream = captured
    set_request_id("req-7")

    logger.warning("migration.document_failed", extra={"document_id": "abc", "progress": "3/10"})

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "migration.document_failed"
    assert payload["level"] == "warning"
    assert payload["request_id"] == "req-7"
    assert payload["document_id"] == "abc"
    assert payload["progress"] == "3/10"


def test_exception_info_is_serialised(captured) -> None:
    logger, stream = captured

    try:
        raise ValueError("bad shape")
    except ValueError:
        logger.exception("migration.crashed")

    payload = json.loads(stream.getvalue())
    assert "ValueError: bad shape" in payload["exc_info"]
