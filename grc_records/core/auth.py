"""API key authentication for the HTTP endpoints.

Keys come from ``APP_API_KEYS`` (comma separated). Failures raise
``AuthenticationAppError`` so they leave through the shared exception handler
with the standard error envelope and a 403.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header

from grc_records.core.config import AppSettings, settings
from grc_records.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Split ``APP_API_KEYS`` into the set of accepted keys.

    Examples:
        >>> sorted(parse_api_keys("key1, key2 , key3 "))
        ['key1', 'key2', 'key3']
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()
    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _fingerprint(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str | None, app_settings: AppSettings | None = None) -> None:
    """Check ``provided_key`` against the configured keys.

    Raises:
        AuthenticationAppError: Key missing or unknown, or auth is required but
            no keys are configured.
    """
    app_settings = app_settings or settings.app
    if not app_settings.api_key_required:
        return

    valid_keys = parse_api_keys(app_settings.api_keys)
    if not valid_keys:
        logger.error("auth.failed", extra={"reason": "api_keys_not_configured"})
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.failed", extra={"reason": "missing_api_key"})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning(
            "auth.failed",
            extra={"reason": "invalid_api_key", "api_key_hash": _fingerprint(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )

    logger.debug("auth.success", extra={"api_key_hash": _fingerprint(provided_key)})


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding protected routes.

    Usage:
        @router.get("/protected", dependencies=[Depends(verify_api_key)])
    """
    validate_api_key(x_api_key)
