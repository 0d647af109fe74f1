"""OpenAPI schema additions: the ``X-API-Key`` scheme and tag descriptions."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "MITRE ATT&CK",
        "description": "Techniques from the official ATT&CK STIX feed, cached and sanitised.",
    },
    {
        "name": "Health",
        "description": "Liveness checks. No API key required.",
    },
]

PUBLIC_PATH_SUFFIXES = ("/health",)


def apply_openapi_customizations(app: FastAPI) -> None:
    """Require the API key on every operation except the public ones."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {"type": "apiKey", "in": "header", "name": "X-API-Key"},
        )
        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        known = {tag.get("name") for tag in tags}
        tags.extend(tag for tag in TAGS_METADATA if tag["name"] not in known)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith(PUBLIC_PATH_SUFFIXES):
                for operation in methods.values():
                    if isinstance(operation, dict):
                        operation["security"] = []
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
