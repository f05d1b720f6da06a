"""Deterministic OpenAPI spec builder.

Scope:
- Auth endpoints: /iam/auth/login (POST), /iam/auth/me (GET)
- For each tracked entity: list (+ single GET & HEAD) with caching headers
- Action and create endpoints with their required permissions
- Status lifecycles as ``x-transitions`` taken from the runtime transition validators

This is the canonical builder module; `personnel/openapi.py` re-exports from here.
"""
from typing import Any, Dict
from .openapi_parts.constants import (
    ENTITIES,
    READ_PERMISSIONS,
    OPERATIONS,
    SORT_DETAILS,
)
from .openapi_parts.helpers import schema_minimal
from .openapi_parts.paths import build_entity_paths, mutation

__all__ = ["build_openapi_spec"]


def _transitions() -> Dict[str, Dict[str, Any]]:
    from personnel.services.applications import APPLICATION_FSM
    from personnel.services.bonus import PAYMENT_FSM
    from personnel.services.ranks import EMPLOYEE_FSM
    from personnel.services.sanctions import SANCTION_FSM
    from personnel.services.uprank import UPRANK_FSM
    fsms = {
        "Employee": EMPLOYEE_FSM,
        "Application": APPLICATION_FSM,
        "UprankRequest": UPRANK_FSM,
        "Sanction": SANCTION_FSM,
        "BonusPayment": PAYMENT_FSM,
    }
    return {
        name: {state: sorted(fsm.graph[state]) for state in fsm.states()}
        for name, fsm in fsms.items()
    }


def build_openapi_spec() -> Dict[str, Any]:
    schemas = {e[0]: schema_minimal(e[0]) for e in ENTITIES}
    for name, graph in _transitions().items():
        schemas[name]["x-transitions"] = list(graph)
        schemas[name]["x-transition-graph"] = graph

    components: Dict[str, Any] = {
        "schemas": schemas
        | {
            "Pagination": {
                "type": "object",
                "properties": {
                    "total": {"type": "integer"},
                    "limit": {"type": "integer"},
                    "offset": {"type": "integer"},
                    "returned": {"type": "integer"},
                },
                "required": ["total", "limit", "offset", "returned"],
            },
            "Error": {
                "type": "object",
                "properties": {
                    "error": {
                        "type": "object",
                        "properties": {
                            "status": {"type": "integer"},
                            "title": {"type": "string"},
                            "detail": {"type": "string"},
                            "kind": {"type": "string"},
                        },
                        "required": ["status", "title", "detail", "kind"],
                    }
                },
                "required": ["error"],
            },
        },
        "responses": {"NotFound": {"description": "Not Found"}, "BadRequest": {"description": "Bad Request"}},
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {},
    }

    params = components["parameters"]
    params.update({
        "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 50}},
        "OffsetParam": {"name": "offset", "in": "query", "schema": {"type": "integer", "default": 0}},
    })
    for pname, desc in SORT_DETAILS.items():
        params[pname] = {"name": "sort", "in": "query", "schema": {"type": "string"}, "description": desc}

    paths: Dict[str, Any] = {
        "/iam/auth/login": {"post": {"summary": "Login", "security": [], "responses": {"200": {"description": "JWT issued"}}}},
        "/iam/auth/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}},
    }

    for schema_name, list_path, id_param in ENTITIES:
        frag = build_entity_paths(schema_name, list_path, id_param)
        for k, v in frag.items():
            paths.setdefault(k, {}).update(v)
        perms = READ_PERMISSIONS.get(schema_name, [])
        for path in (list_path, f"{list_path}/{{{id_param}}}" if id_param else None):
            for meth in ("get", "head"):
                if path and meth in paths.get(path, {}):
                    paths[path][meth].setdefault("x-required-permissions", list(perms))

    for path, (method, summary, perms) in OPERATIONS.items():
        paths.setdefault(path, {})[method] = mutation(summary, perms, path)

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("{", "").replace("}", "").replace("-", "_")
            od["operationId"] = f"auto_{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "Personnel Engine API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
