"""Modular pieces for the programmatic OpenAPI builder.

This package holds the registries and path builders that the main builder imports
to keep the spec generation code readable as the API grows.
"""

__all__ = [
    "constants",
    "helpers",
    "paths",
]
