"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports the settings module.
"""

import os

os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from grc_records.adapters.store.in_memory import InMemoryDocumentStore  # noqa: E402


class FakeClock:
    """Deterministic monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()
