"""Tests for the global exception handlers: status mapping and envelope."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from grc_records.core.errors import (
    AppError,
    AuthenticationAppError,
    DocumentWriteError,
    FetchTimeoutError,
    InvalidContentTypeError,
    RateLimitExceededError,
    ResponseTooLargeError,
    StoreUnavailableError,
    UpstreamHTTPError,
    ValidationAppError,
)
from grc_records.core.exception_handlers import setup_exception_handlers, status_code_for
from grc_records.core.logging import set_request_id


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("error_type", "expected"),
    [
        (ValidationAppError, 400),
        (AuthenticationAppError, 403),
        (RateLimitExceededError, 429),
        (FetchTimeoutError, 504),
        (UpstreamHTTPError, 502),
        (InvalidContentTypeError, 502),
        (ResponseTooLargeError, 502),
        (StoreUnavailableError, 503),
        (DocumentWriteError, 500),
        (AppError, 500),
    ],
)
def test_status_code_mapping(error_type: type[AppError], expected: int) -> None:
    assert status_code_for(error_type(code="c", message="m")) == expected


def test_envelope_includes_details_and_request_id(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/boom")
    async def boom():
        set_request_id("req-42")
        raise InvalidContentTypeError(
            code="invalid_content_type",
            message="Invalid content type received: text/html",
            details={"content_type": "text/html"},
        )

    resp = client.get("/boom")

    assert resp.status_code == 502
    assert resp.json() == {
        "error": {
            "code": "invalid_content_type",
            "message": "Invalid content type received: text/html",
            "request_id": "req-42",
            "details": {"content_type": "text/html"},
        }
    }


def test_rate_limit_sets_retry_after(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/limited")
    async def limited():
        raise RateLimitExceededError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded. Please try again later.",
            details={"retry_after": 12.3, "remaining": 0},
        )

    resp = client.get("/limited")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "13"


def test_details_omitted_when_empty(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/plain")
    async def plain():
        raise ValidationAppError(code="bad_input", message="Bad input")

    assert "details" not in client.get("/plain").json()["error"]


def test_unexpected_exception_is_generic_500(client: TestClient, app_with_handlers: FastAPI) -> None:
    @app_with_handlers.get("/crash")
    async def crash():
        raise RuntimeError("database password is hunter2")

    resp = client.get("/crash")

    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "internal_server_error"
    assert "hunter2" not in resp.text
