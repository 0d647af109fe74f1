"""Rate-limited, time-bounded and validated outbound HTTP calls.

Every call to a third-party feed goes through ``SecureFetcher.fetch`` which:
1. asks the injected rate limiter for admission,
2. sends the request under a hard timeout (the in-flight request is cancelled
   when it fires),
3. rejects non-2xx answers, unexpected media types and oversized bodies
   before handing the fully read response back to the caller.

Parsing the body is left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence
from urllib.parse import urlsplit

import httpx

from grc_records.adapters.rate_limit.base import AbstractRateLimiter
from grc_records.core.config import MitreSettings
from grc_records.core.errors import (
    FetchTimeoutError,
    FetchTransportError,
    InvalidContentTypeError,
    RateLimitExceededError,
    ResponseTooLargeError,
    UpstreamHTTPError,
)

logger = logging.getLogger(__name__)

SECURITY_EVENT_SOURCE = "mitre-attack-api"

# Hop-by-hop and encoding headers that no longer describe the decoded body
_STRIPPED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


def log_security_event(event: str, **details: Any) -> None:
    """Record a rejected or anomalous outbound call for monitoring."""

    logger.warning(
        "security_event",
        extra={
            "event": event,
            "source": SECURITY_EVENT_SOURCE,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "details": details,
        },
    )


def media_type_of(content_type: str | None) -> str:
    """Return the bare, lower-cased media type of a Content-Type header."""

    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


@dataclass(frozen=True)
class FetchPolicy:
    """Limits and defaults applied to every outbound call."""

    timeout_seconds: float = 10.0
    max_response_bytes: int = 50 * 1024 * 1024
    allowed_content_types: tuple[str, ...] = ("application/json",)
    content_types_by_host: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    default_headers: Mapping[str, str] = field(
        default_factory=lambda: {"Accept": "application/json"}
    )
    chunk_size: int = 64 * 1024

    @classmethod
    def from_settings(cls, mitre: MitreSettings, app_env: str) -> "FetchPolicy":
        raw_types = tuple(t.lower() for t in mitre.raw_content_types)
        return cls(
            timeout_seconds=mitre.effective_timeout(app_env),
            max_response_bytes=mitre.max_response_bytes,
            allowed_content_types=tuple(t.lower() for t in mitre.allowed_content_types),
            content_types_by_host={host.lower(): raw_types for host in mitre.raw_content_hosts},
            default_headers={
                "Accept": "application/json",
                "User-Agent": mitre.user_agent,
                "Cache-Control": "max-age=3600",
            },
        )

    def content_types_for(self, url: str) -> tuple[str, ...]:
        """Allowed media types for ``url``, honouring per-host overrides."""
        host = (urlsplit(url).hostname or "").lower()
        return self.content_types_by_host.get(host, self.allowed_content_types)


class SecureFetcher:
    """Gate outbound HTTP calls through a rate limiter and response checks.

    Attributes:
        client: Shared async HTTP client (owned by the caller).
        limiter: Rate limiter consulted before each call.
        policy: Timeout, size ceiling and media type allow-lists.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        limiter: AbstractRateLimiter,
        policy: FetchPolicy | None = None,
    ) -> None:
        self.client = client
        self.limiter = limiter
        self.policy = policy or FetchPolicy()

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        allowed_content_types: Sequence[str] | None = None,
    ) -> httpx.Response:
        """Perform one validated outbound request.

        Args:
            url: Target URL.
            method: HTTP method.
            headers: Extra request headers; they override the policy defaults.
            allowed_content_types: Media types accepted for this endpoint.
                Defaults to the policy allow-list for the URL's host.

        Returns:
            A fully read ``httpx.Response`` that passed every check.

        Raises:
            RateLimitExceededError: The limiter refused the call.
            FetchTimeoutError: The call did not complete in time.
            FetchTransportError: The connection failed.
            UpstreamHTTPError: Non-2xx status.
            InvalidContentTypeError: Media type outside the allow-list.
            ResponseTooLargeError: Body larger than the configured ceiling.
        """
        decision = self.limiter.consume()
        if not decision.allowed:
            log_security_event(
                "rate_limit_exceeded",
                url=url,
                retry_after_s=decision.retry_after_seconds,
            )
            raise RateLimitExceededError(
                code="rate_limit_exceeded",
                message="Rate limit exceeded. Please try again later.",
                details={
                    "url": url,
                    "remaining": decision.remaining,
                    "retry_after": decision.retry_after_seconds or 0.0,
                },
            )

        allowed = tuple(
            t.lower() for t in (allowed_content_types or self.policy.content_types_for(url))
        )
        request = self.client.build_request(
            method,
            url,
            headers={**self.policy.default_headers, **(headers or {})},
        )
        timeout = self.policy.timeout_seconds

        try:
            response = await asyncio.wait_for(
                self._send_and_validate(request, allowed),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning(
                "secure_fetch.timeout",
                extra={"url": url, "timeout_s": timeout},
            )
            raise FetchTimeoutError(
                code="upstream_timeout",
                message=f"Request to upstream timed out after {timeout:g}s",
                details={"url": url, "timeout_seconds": timeout},
            ) from exc
        except httpx.TransportError as exc:
            logger.warning(
                "secure_fetch.transport_error",
                extra={"url": url, "error_type": type(exc).__name__},
            )
            raise FetchTransportError(
                code="upstream_unreachable",
                message=f"Could not reach upstream: {type(exc).__name__}",
                details={"url": url},
            ) from exc

        logger.info(
            "secure_fetch.ok",
            extra={
                "url": url,
                "status_code": response.status_code,
                "bytes": len(response.content),
                "remaining_calls": self.limiter.remaining(),
            },
        )
        return response

    async def _send_and_validate(
        self,
        request: httpx.Request,
        allowed: tuple[str, ...],
    ) -> httpx.Response:
        streamed = await self.client.send(request, stream=True)
        try:
            self._check_status(streamed)
            self._check_content_type(streamed, allowed)
            self._check_declared_length(streamed)
            body = await self._read_limited(streamed)
        finally:
            await streamed.aclose()

        headers = [
            (name, value)
            for name, value in streamed.headers.multi_items()
            if name.lower() not in _STRIPPED_RESPONSE_HEADERS
        ]
        return httpx.Response(
            status_code=streamed.status_code,
            headers=headers,
            content=body,
            request=request,
        )

    def _check_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        url = str(response.request.url)
        logger.warning(
            "secure_fetch.http_error",
            extra={"url": url, "status_code": response.status_code},
        )
        raise UpstreamHTTPError(
            code="upstream_http_error",
            message=f"HTTP {response.status_code}: {response.reason_phrase}",
            details={
                "url": url,
                "status_code": response.status_code,
                "reason": response.reason_phrase,
            },
        )

    def _check_content_type(self, response: httpx.Response, allowed: tuple[str, ...]) -> None:
        raw = response.headers.get("content-type")
        if media_type_of(raw) in allowed:
            return
        url = str(response.request.url)
        log_security_event("invalid_content_type", url=url, content_type=raw)
        raise InvalidContentTypeError(
            code="invalid_content_type",
            message=f"Invalid content type received: {raw} for URL: {url}",
            details={
                "url": url,
                "content_type": raw or "",
                "allowed_content_types": list(allowed),
            },
        )

    def _check_declared_length(self, response: httpx.Response) -> None:
        declared = response.headers.get("content-length")
        if declared is None:
            return
        try:
            length = int(declared)
        except ValueError:
            # Unparseable header: fall back to the chunked read limit
            return
        if length > self.policy.max_response_bytes:
            self._reject_size(response, length)

    async def _read_limited(self, response: httpx.Response) -> bytes:
        """Read the body in chunks, aborting once the ceiling is crossed."""

        size = 0
        chunks: list[bytes] = []
        async for chunk in response.aiter_bytes(self.policy.chunk_size):
            size += len(chunk)
            if size > self.policy.max_response_bytes:
                self._reject_size(response, size)
            chunks.append(chunk)
        return b"".join(chunks)

    def _reject_size(self, response: httpx.Response, size: int) -> None:
        url = str(response.request.url)
        log_security_event(
            "response_too_large",
            url=url,
            size=size,
            max_bytes=self.policy.max_response_bytes,
        )
        raise ResponseTooLargeError(
            code="response_too_large",
            message="Response size exceeds maximum allowed",
            details={
                "url": url,
                "content_length": size,
                "max_bytes": self.policy.max_response_bytes,
            },
        )
