"""Error hierarchy shared by the API, the fetcher and the migrator.

Errors are split by what a caller can do about them. Every ``AppError``
subclass declares ``retryable`` so callers decide on backoff by type instead
of by inspecting messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    url: str
    status_code: int
    reason: str
    content_type: str
    allowed_content_types: list[str]
    content_length: int
    max_bytes: int
    timeout_seconds: float
    retry_after: float
    remaining: int
    document_id: str
    collection: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Root of every error this package raises on purpose.

    ``code`` is the stable identifier clients and logs key on. ``details``
    holds whatever context was available where the error was raised.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    retryable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Bad caller input or a malformed upstream payload."""


class AuthenticationAppError(AppError):
    """Missing, unknown or unconfigured API key."""


class OutboundFetchError(AppError):
    """Base class for failures calling a third-party API."""


class RateLimitExceededError(OutboundFetchError):
    """The local limiter refused the call. Safe to retry after a pause."""

    retryable = True


class FetchTimeoutError(OutboundFetchError):
    """The upstream did not answer within the hard timeout."""

    retryable = True


class FetchTransportError(OutboundFetchError):
    """Connection to the upstream failed before a response arrived."""

    retryable = True


class UpstreamHTTPError(OutboundFetchError):
    """Upstream answered with a non-2xx status."""

    @property
    def status_code(self) -> int:
        return int((self.details or {}).get("status_code", 0))

    @property
    def is_retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class InvalidContentTypeError(OutboundFetchError):
    """Upstream answered with a media type outside the allow-list."""


class ResponseTooLargeError(OutboundFetchError):
    """Upstream answer exceeds the configured byte ceiling."""


class StoreUnavailableError(AppError):
    """The document store cannot be reached. Fatal to a migration batch."""

    retryable = True


class DocumentWriteError(AppError):
    """A single document write was rejected by the store."""


class PerDocumentMigrationError(AppError):
    """Migrating one document failed; recorded and skipped by the batch."""

    def __init__(self, document_id: Any, cause: BaseException) -> None:
        super().__init__(
            code="document_migration_failed",
            message=f"{type(cause).__name__}: {cause}",
            details={"document_id": str(document_id)},
        )
        self.document_id = document_id
        self.cause = cause
