"""Entity path builders for the OpenAPI spec.

Per-entity fragments come out in a fixed order:
- list path first
- single-resource path next (when the entity has one)
- then action endpoints in registry order
"""
import re
from typing import Any, Dict, List, Optional

from .constants import ACTION_REGISTRY, SORT_PARAM_MAP
from .helpers import caching_headers, path_params, error_response

PATH_PARAM = re.compile(r"{(\w+)}")


def _list_params(schema_name: str) -> List[Dict[str, Any]]:
    params = [
        {"$ref": "#/components/parameters/LimitParam"},
        {"$ref": "#/components/parameters/OffsetParam"},
    ]
    if schema_name in SORT_PARAM_MAP:
        params.append({"$ref": f"#/components/parameters/{SORT_PARAM_MAP[schema_name]}"})
    return params


def build_entity_paths(schema_name: str, list_path: str, id_param: Optional[str]) -> Dict[str, Any]:
    paths: Dict[str, Any] = {}
    ref = {"$ref": f"#/components/schemas/{schema_name}"}

    paths[list_path] = {
        "get": {
            "summary": f"List {list_path.rsplit('/', 1)[-1].replace('-', ' ')}",
            "parameters": _list_params(schema_name),
            "responses": {
                "200": {
                    "description": "OK",
                    "headers": caching_headers(),
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "data": {"type": "array", "items": ref},
                                    "pagination": {"$ref": "#/components/schemas/Pagination"},
                                },
                            }
                        }
                    },
                },
                "304": {"description": "Not Modified"},
                "400": {"$ref": "#/components/responses/BadRequest"},
            },
        },
        "head": {
            "summary": f"{schema_name} list validators",
            "responses": {
                "200": {"description": "Headers only", "headers": caching_headers()},
                "304": {"description": "Not Modified"},
            },
        },
    }
    if not id_param:
        return paths

    single_path = f"{list_path}/{{{id_param}}}"
    paths[single_path] = {
        "get": {
            "summary": f"Get {schema_name}",
            "parameters": path_params(id_param),
            "responses": {
                "200": {
                    "description": "OK",
                    "headers": caching_headers(),
                    "content": {"application/json": {"schema": ref}},
                },
                "304": {"description": "Not Modified"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
        },
        "head": {
            "summary": f"{schema_name} validators",
            "parameters": path_params(id_param),
            "responses": {
                "200": {"description": "Headers only", "headers": caching_headers()},
                "304": {"description": "Not Modified"},
                "404": {"$ref": "#/components/responses/NotFound"},
            },
        },
    }

    for spec in ACTION_REGISTRY.get(schema_name, []):
        act_path = f"{single_path}/{spec['action']}"
        paths.setdefault(act_path, {})[spec["method"]] = mutation(spec["summary"], [spec["permission"]], act_path, ref)
    return paths


def mutation(summary: str, permissions: List[str], path: str, ref: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    params = []
    for name in PATH_PARAM.findall(path):
        if name.endswith("_id"):
            params.extend(path_params(name))
        else:
            params.append({"name": name, "in": "path", "required": True, "schema": {"type": "string"}})
    ok: Dict[str, Any] = {"description": "OK"}
    if ref:
        ok["content"] = {"application/json": {"schema": ref}}
    op: Dict[str, Any] = {
        "summary": summary,
        "responses": {
            "200": ok,
            "400": error_response("Domain precondition failed"),
            "403": error_response("Missing permission"),
            "404": {"$ref": "#/components/responses/NotFound"},
            "409": error_response("Conflict"),
        },
        "x-required-permissions": list(permissions),
    }
    if params:
        op["parameters"] = params
    return op


__all__ = ["build_entity_paths", "mutation"]
