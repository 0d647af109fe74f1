"""Validation and sanitisation of STIX objects from the ATT&CK feed.

Pure functions with no I/O so they can be tested in isolation.
"""

from __future__ import annotations

import html
import re
from typing import Any

MITRE_TECHNIQUE_ID = re.compile(r"^T\d{4}(\.\d{3})?$")

MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
MAX_ID_LENGTH = 100
MAX_PLATFORMS = 20
MAX_PLATFORM_LENGTH = 50

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_IFRAME_BLOCK = re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)

_ACTIVE_CONTENT_MARKERS = ("<script", "javascript:")


def _has_active_content(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    lowered = value.lower()
    return any(marker in lowered for marker in _ACTIVE_CONTENT_MARKERS)


def validate_stix_object(obj: Any) -> bool:
    """Return True for a well-formed ``attack-pattern`` object without active content.

    Examples:
        >>> validate_stix_object({"type": "attack-pattern", "id": "attack-pattern--1"})
        True
        >>> validate_stix_object({"type": "malware", "id": "malware--1"})
        False
    """
    if not isinstance(obj, dict):
        return False
    if not isinstance(obj.get("type"), str) or not isinstance(obj.get("id"), str):
        return False
    if not obj["type"] or not obj["id"]:
        return False
    if obj["type"] != "attack-pattern":
        return False
    if _has_active_content(obj.get("name")) or _has_active_content(obj.get("description")):
        return False
    return True


def sanitize_string(value: Any, max_length: int) -> str:
    """Strip script/iframe blocks, ``javascript:`` and inline handlers, then truncate.

    Non-strings become an empty string.
    """
    if not isinstance(value, str):
        return ""

    sanitized = _SCRIPT_BLOCK.sub("", value)
    sanitized = _JAVASCRIPT_URL.sub("", sanitized)
    sanitized = _EVENT_HANDLER.sub("", sanitized)
    sanitized = _IFRAME_BLOCK.sub("", sanitized)
    return sanitized[:max_length]


def decode_entities(value: str) -> str:
    """Decode HTML entities (named, decimal and hex) found in feed text."""

    return html.unescape(value) if value else value


def clean_text(value: Any, max_length: int) -> str:
    """Decode entities first so encoded markup cannot slip past sanitisation."""

    if not isinstance(value, str):
        return ""
    return sanitize_string(decode_entities(value), max_length)


def validate_mitre_id(value: Any) -> bool:
    """Check the ATT&CK technique id format (``T1234`` or ``T1234.001``)."""

    return isinstance(value, str) and bool(MITRE_TECHNIQUE_ID.match(value))


def clean_platforms(value: Any) -> list[str]:
    """Sanitised platform names, at most 20 of up to 50 characters."""
    if not isinstance(value, list):
        return []
    platforms = [clean_text(item, MAX_PLATFORM_LENGTH) for item in value if isinstance(item, str)]
    return [p for p in platforms if p][:MAX_PLATFORMS]
