"""Helper functions for the OpenAPI builder."""
from typing import Any, Dict


def schema_minimal(name: str) -> Dict[str, Any]:
    return {"type": "object", "properties": {"id": {"type": "integer"}}, "required": ["id"]}


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def path_params(*names: str):
    return [{"name": n, "in": "path", "required": True, "schema": {"type": "integer"}} for n in names]


def error_response(description: str) -> Dict[str, Any]:
    return {
        "description": description,
        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}},
    }


__all__ = ["schema_minimal", "caching_headers", "path_params", "error_response"]
