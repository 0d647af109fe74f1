"""Outbound HTTP adapters."""

from grc_records.adapters.http.secure_fetch import FetchPolicy, SecureFetcher

__all__ = ["FetchPolicy", "SecureFetcher"]
