"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- A shared 429 response on every rate-limited (/api/*) operation

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Health",
        "description": "Uncached liveness of the database and cache store.",
    },
    {
        "name": "System",
        "description": "Cached service status and dashboard metrics.",
    },
    {
        "name": "Users",
        "description": "List and create users.",
    },
]

_RATE_LIMITED_RESPONSE = {
    "description": "Too many requests from this client in the current window",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and rate-limit docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if not path.startswith("/api/"):
                continue
            for method_obj in methods.values():
                if isinstance(method_obj, dict):
                    method_obj.setdefault("responses", {}).setdefault("429", _RATE_LIMITED_RESPONSE)

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
