"""OpenAPI customization.

Adds the X-API-Key security scheme, tag descriptions and the public
exemption for health checks to the generated schema.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Scraping",
        "description": "SSRF checks for URLs fetched during contact enrichment.",
    },
    {
        "name": "Rate limits",
        "description": "Sliding-window limits for AI generation, checkout and general API use.",
    },
    {
        "name": "Admin",
        "description": "Maintenance operations over rate limit records.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

PUBLIC_PATH_SUFFIXES = ("/health",)


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the schema documents API key auth."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Service API key shared with the calling product services.",
            },
        )
        schema.setdefault("security", [{"ApiKeyAuth": []}])

        tags = schema.setdefault("tags", [])
        known = {t.get("name") for t in tags}
        tags.extend(tag for tag in TAGS_METADATA if tag["name"] not in known)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith(PUBLIC_PATH_SUFFIXES):
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
